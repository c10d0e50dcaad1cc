import numpy as np
import pytest
from PIL import Image

from leafseg.preprocess import as_array, resize, to_tensor


def test_resize_to_inference_resolution(leaf_photo):
    out = resize(leaf_photo)
    assert out.shape == (256, 256, 3)
    assert out.dtype == np.uint8


def test_resize_keeps_alpha_and_copies():
    img = np.full((256, 256, 4), 9, dtype=np.uint8)
    out = resize(img)
    assert out.shape == (256, 256, 4)
    out[:] = 0
    assert (img == 9).all()


def test_accepts_pil_and_grayscale():
    pil = Image.new("L", (40, 30), 77)
    arr = as_array(pil)
    assert arr.shape == (30, 40, 3)
    assert (arr == 77).all()


@pytest.mark.parametrize("bad", [
    np.zeros((0, 10, 3), dtype=np.uint8),
    np.zeros((10, 10, 2), dtype=np.uint8),
    np.zeros((10, 10, 3), dtype=np.float32),
])
def test_invalid_images_rejected(bad):
    with pytest.raises(ValueError):
        resize(bad)


def test_tensor_layouts():
    img = np.zeros((256, 256, 4), dtype=np.uint8)
    img[..., 0] = 255
    nhwc = to_tensor(img, "nhwc")
    nchw = to_tensor(img, "nchw")
    assert nhwc.shape == (1, 256, 256, 3)
    assert nchw.shape == (1, 3, 256, 256)
    assert nhwc.dtype == np.float32
    assert nhwc[0, 0, 0, 0] == 255.0 and nchw[0, 0, 0, 0] == 255.0
    with pytest.raises(ValueError):
        to_tensor(img, "hwc")


def test_tensor_normalization(monkeypatch):
    from leafseg import config
    monkeypatch.setattr(config, "NORM_MEAN", 127.5)
    monkeypatch.setattr(config, "NORM_STD", 127.5)
    img = np.zeros((256, 256, 3), dtype=np.uint8)
    img[0, 0] = 255
    t = to_tensor(img, "nhwc")
    assert t.min() == -1.0 and t.max() == 1.0
