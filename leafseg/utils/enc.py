import base64

import cv2
import numpy as np


def rle_encode(mask: np.ndarray) -> str:
    # mask: HxW boolean, column-major runs "start length ..." (1-based)
    pixels = mask.flatten(order="F").astype(np.uint8)
    pads = np.concatenate([[0], pixels, [0]]).astype(np.uint8)
    runs = np.where(pads[1:] != pads[:-1])[0] + 1
    runs[1::2] = runs[1::2] - runs[::2]
    return " ".join(map(str, runs.tolist()))


def png_b64(image_rgb: np.ndarray) -> str:
    # RGB(A) -> PNG -> base64
    code = cv2.COLOR_RGBA2BGRA if image_rgb.shape[2] == 4 else cv2.COLOR_RGB2BGR
    ok, buf = cv2.imencode(".png", cv2.cvtColor(image_rgb, code))
    if not ok:
        raise ValueError("PNG encoding failed")
    return base64.b64encode(buf.tobytes()).decode("ascii")
