from typing import List, Optional
import cv2, numpy as np

CAPTIONS = ("Original Image", "Extracted Leaf", "Diseased Spots")


def _caption(image: np.ndarray, text: str, height: int = 24) -> np.ndarray:
    bar = np.zeros((height, image.shape[1], 3), dtype=np.uint8)
    cv2.putText(bar, text, (6, height - 7), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1, cv2.LINE_AA)
    return np.vstack([bar, image[..., :3]])


def compose_panel(images: List[np.ndarray], captions=CAPTIONS, footer: Optional[str] = None) -> np.ndarray:
    """Side-by-side RGB panel of equally sized images with a caption above each."""
    cols = [_caption(img, cap) for img, cap in zip(images, captions)]
    sep = np.full((cols[0].shape[0], 4, 3), 255, dtype=np.uint8)
    parts = []
    for i, c in enumerate(cols):
        if i:
            parts.append(sep)
        parts.append(c)
    panel = np.hstack(parts)
    if footer:
        panel = np.vstack([panel, np.zeros((28, panel.shape[1], 3), dtype=np.uint8)])
        cv2.putText(panel, footer, (6, panel.shape[0] - 9), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (255, 255, 255), 1, cv2.LINE_AA)
    return panel


def green_leaf_grid(image_rgb: np.ndarray, h_min, h_max, s_min, v_min) -> np.ndarray:
    """Pseudo leaf probability grid (0/1) from an HSV green range."""
    hsv = cv2.cvtColor(image_rgb[..., :3], cv2.COLOR_RGB2HSV)
    h, s, v = cv2.split(hsv)
    mask = ((h >= h_min) & (h <= h_max) & (s >= s_min) & (v >= v_min)).astype(np.uint8) * 255
    k = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (5, 5))
    mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, k, iterations=1)
    mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, k, iterations=1)
    return (mask > 0).astype(np.float32)


def brown_patch_grid(image_rgb: np.ndarray, h_min, h_max, s_min, v_max) -> np.ndarray:
    """Pseudo disease probability grid (0/1) from an HSV brown range."""
    hsv = cv2.cvtColor(image_rgb[..., :3], cv2.COLOR_RGB2HSV)
    h, s, v = cv2.split(hsv)
    mask = (h >= h_min) & (h <= h_max) & (s >= s_min) & (v <= v_max)
    return mask.astype(np.float32)
