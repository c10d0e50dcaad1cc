# leafseg/fusion.py

from typing import Tuple

import numpy as np

from leafseg import config


def _check_shapes(image: np.ndarray, *grids: np.ndarray) -> None:
    for g in grids:
        if g.shape != image.shape[:2]:
            raise ValueError(f"grid shape {g.shape} does not match image {image.shape[:2]}")


def _scale_rgb(pixels: np.ndarray, factor: float) -> np.ndarray:
    """Multiply RGB channels, truncate and clamp to 0..255; alpha is left alone."""
    out = pixels.copy()
    rgb = np.floor(pixels[..., :3].astype(np.float32) * np.float32(factor))
    out[..., :3] = np.clip(rgb, 0, 255).astype(np.uint8)
    return out


def leaf_mask(leaf_grid: np.ndarray, threshold: float = config.THRESH_LEAF) -> np.ndarray:
    return np.asarray(leaf_grid) > threshold


def disease_mask(leaf_grid: np.ndarray, disease_grid: np.ndarray,
                 leaf_thr: float = config.THRESH_LEAF,
                 disease_thr: float = config.THRESH_DISEASE) -> np.ndarray:
    return (np.asarray(leaf_grid) > leaf_thr) & (np.asarray(disease_grid) > disease_thr)


def isolate_leaf(image: np.ndarray, leaf_grid: np.ndarray,
                 threshold: float = config.THRESH_LEAF) -> Tuple[np.ndarray, int]:
    """
    Hard cutout: background pixels become opaque black, leaf pixels keep their colour.
    Returns (leaf_isolated, leaf_pixel_count).
    """
    _check_shapes(image, leaf_grid)
    keep = leaf_mask(leaf_grid, threshold)

    out = np.empty_like(image)
    out[~keep] = 0
    if image.shape[2] == 4:
        out[~keep, 3] = 255
    out[keep] = image[keep]
    return out, int(keep.sum())


def highlight_disease(image: np.ndarray, leaf_grid: np.ndarray, disease_grid: np.ndarray,
                      gain: float = config.BRIGHTEN_GAIN,
                      attenuation: float = config.DARKEN_FACTOR) -> Tuple[np.ndarray, int]:
    """
    Brighten diseased leaf pixels by `gain`, darken everything else by `attenuation`.
    Returns (highlighted, diseased_pixel_count).
    """
    _check_shapes(image, leaf_grid, disease_grid)
    sick = disease_mask(leaf_grid, disease_grid)

    out = np.empty_like(image)
    out[sick] = _scale_rgb(image[sick], gain)
    out[~sick] = _scale_rgb(image[~sick], attenuation)
    return out, int(sick.sum())
