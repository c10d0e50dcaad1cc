import asyncio

import cv2
import numpy as np
from fastapi import APIRouter, File, HTTPException, UploadFile

from leafseg.errors import HTTP_STATUS, ErrorKind, Failure
from leafseg.pipeline import InferenceResult, Pipeline
from leafseg.schemas import InferResponse, SeverityItem
from leafseg.severity import format_severity
from leafseg.utils.enc import png_b64, rle_encode
from leafseg.utils.visualize import compose_panel

router = APIRouter(tags=["inference"])
pipe = Pipeline()


def decode_image(data: bytes) -> np.ndarray:
    """Upload bytes -> RGB(A) uint8 array."""
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise HTTPException(status_code=400, detail={"kind": ErrorKind.INVALID_INPUT.value,
                                                     "message": "Not an image"})
    if image.dtype != np.uint8:
        image = cv2.convertScaleAbs(image, alpha=255.0 / 65535.0)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def raise_failure(f: Failure):
    raise HTTPException(status_code=HTTP_STATUS.get(f.kind, 500),
                        detail={"kind": f.kind.value, "message": f.message})


def to_response(r: InferenceResult, panel: bool = False) -> InferResponse:
    images = {
        "resized": png_b64(r.resized),
        "leaf": png_b64(r.leaf_isolated),
        "disease": png_b64(r.highlighted),
    }
    if panel:
        footer = f"Severity: {format_severity(r.ratio)} - tier {r.severity.tier} ({r.severity.label})"
        images["panel"] = png_b64(compose_panel([r.resized, r.leaf_isolated, r.highlighted], footer=footer))
    return InferResponse(
        request_id=r.request_id,
        leaf_pixels=r.leaf_pixels,
        diseased_pixels=r.diseased_pixels,
        ratio=r.ratio,
        severity_text=format_severity(r.ratio),
        severity=SeverityItem(tier=r.severity.tier, label=r.severity.label,
                              treatment=list(r.severity.treatment)),
        elapsed_ms=round(r.elapsed_ms, 2),
        leaf_mask_rle=rle_encode(r.leaf_mask),
        images=images,
    )


@router.post("/infer", response_model=InferResponse)
async def infer(file: UploadFile = File(...), panel: bool = False):
    image = decode_image(await file.read())
    out = await asyncio.wrap_future(pipe.submit(image))
    if isinstance(out, Failure):
        raise_failure(out)
    return to_response(out, panel=panel)
