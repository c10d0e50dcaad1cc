from pydantic import BaseModel, Field
from typing import List, Optional, Dict


class SeverityItem(BaseModel):
    tier: int
    label: str
    treatment: List[str] = []


class ModelStatus(BaseModel):
    state: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(..., description="ok | loading | degraded")
    models: Dict[str, ModelStatus] = {}


class InferResponse(BaseModel):
    request_id: str
    status: str = "OK"
    leaf_pixels: int
    diseased_pixels: int
    ratio: float
    severity_text: str
    severity: SeverityItem
    elapsed_ms: float
    leaf_mask_rle: Optional[str] = None
    images: Dict[str, str] = Field(default_factory=dict, description="base64 PNG by name")


class HeuristicsResponse(BaseModel):
    status: str
    leaf_pixels: int
    diseased_pixels: int
    ratio: Optional[float] = None
    severity: Optional[SeverityItem] = None
    images: Dict[str, str] = {}
