import numpy as np
import pytest

from leafseg.models.loaders import DISEASE, LEAF, ModelRuntime

SIZE = 256


def const_grid(value: float) -> np.ndarray:
    return np.full((SIZE, SIZE), value, dtype=np.float32)


def fake_loader(outputs, calls=None):
    """Loader whose models ignore the input and return fixed grids, keyed by weights path."""
    def load(weights):
        if isinstance(outputs[weights], Exception):
            raise outputs[weights]

        def run(tensor):
            if calls is not None:
                calls.append((weights, tensor.shape))
            out = outputs[weights]
            return out() if callable(out) else out
        return run
    return load


def make_runtime(leaf_out, disease_out, calls=None, start=True) -> ModelRuntime:
    rt = ModelRuntime(weights={LEAF: "leaf", DISEASE: "disease"},
                      loader=fake_loader({"leaf": leaf_out, "disease": disease_out}, calls))
    if start:
        rt.initialize()
    return rt


@pytest.fixture
def leaf_photo():
    # green leaf ellipse with a brown lesion on a grey background, 480x640
    import cv2
    img = np.full((480, 640, 3), 128, dtype=np.uint8)
    cv2.ellipse(img, (320, 240), (220, 150), 0, 0, 360, (40, 160, 50), -1)
    cv2.circle(img, (300, 220), 40, (120, 70, 30), -1)
    return img


@pytest.fixture
def square_rgb():
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(SIZE, SIZE, 3), dtype=np.uint8)
