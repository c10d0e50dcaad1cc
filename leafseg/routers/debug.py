import numpy as np
from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from leafseg import config
from leafseg.fusion import highlight_disease, isolate_leaf
from leafseg.preprocess import resize
from leafseg.errors import ErrorKind, Failure
from leafseg.routers.infer import decode_image, raise_failure
from leafseg.schemas import HeuristicsResponse, SeverityItem
from leafseg.severity import classify
from leafseg.utils.enc import png_b64
from leafseg.utils.visualize import brown_patch_grid, green_leaf_grid

router = APIRouter(prefix="/debug", tags=["debug"])


def _severity_item(ratio: float) -> SeverityItem:
    s = classify(ratio)
    return SeverityItem(tier=s.tier, label=s.label, treatment=list(s.treatment))


@router.get("/severity", response_model=SeverityItem)
def severity(ratio: float = Query(..., ge=0.0)):
    try:
        return _severity_item(ratio)
    except ValueError as e:
        raise HTTPException(422, str(e))


@router.post("/heuristics", response_model=HeuristicsResponse)
async def heuristics(file: UploadFile = File(...)):
    """Fusion + severity over HSV pseudo grids (green leaf, brown lesions); no models involved."""
    img = resize(decode_image(await file.read()), config.INPUT_SIZE, config.INPUT_SIZE)

    brown = brown_patch_grid(img, config.BRN_H_MIN, config.BRN_H_MAX, config.BRN_S_MIN, config.BRN_V_MAX)
    green = green_leaf_grid(img, config.VEG_H_MIN, config.VEG_H_MAX, config.VEG_S_MIN, config.VEG_V_MIN)
    leaf = np.maximum(green, brown)  # lesions are part of the leaf

    leaf_img, leaf_count = isolate_leaf(img, leaf)
    sick_img, sick_count = highlight_disease(img, leaf, brown)
    if leaf_count == 0:
        raise_failure(Failure(ErrorKind.DEGENERATE_RATIO, "no leaf-coloured pixels found in image"))

    images = {"leaf": png_b64(leaf_img), "disease": png_b64(sick_img)}
    ratio = sick_count / leaf_count
    return HeuristicsResponse(status="OK", leaf_pixels=leaf_count, diseased_pixels=sick_count,
                              ratio=ratio, severity=_severity_item(ratio), images=images)
