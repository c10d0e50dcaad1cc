# leafseg/preprocess.py

from typing import Union

import cv2
import numpy as np
from PIL import Image

from leafseg import config


def as_array(image: Union[np.ndarray, Image.Image]) -> np.ndarray:
    """RGB/RGBA uint8 array from an ndarray or a PIL image; grayscale is expanded to RGB."""
    if isinstance(image, Image.Image):
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
        image = np.asarray(image)

    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        raise ValueError(f"expected uint8 pixels, got {arr.dtype}")
    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=-1)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"expected HxW, HxWx3 or HxWx4 image, got shape {arr.shape}")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValueError("image has zero area")
    return arr


def resize(image, width: int = config.INPUT_SIZE, height: int = config.INPUT_SIZE) -> np.ndarray:
    arr = as_array(image)
    if arr.shape[:2] == (height, width):
        return arr.copy()
    return cv2.resize(arr, (width, height), interpolation=cv2.INTER_LINEAR)


def to_tensor(image: np.ndarray, layout: str = config.INPUT_LAYOUT) -> np.ndarray:
    """Batch of one float32 tensor, alpha dropped, (pixel - NORM_MEAN) / NORM_STD."""
    rgb = image[..., :3].astype(np.float32)
    t = (rgb - config.NORM_MEAN) / config.NORM_STD
    if layout == "nchw":
        t = t.transpose(2, 0, 1)
    elif layout != "nhwc":
        raise ValueError(f"unknown tensor layout: {layout}")
    return np.ascontiguousarray(t[np.newaxis, ...], dtype=np.float32)
