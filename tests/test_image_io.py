from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from sfmintrinsics.core.features import PointFeature
from sfmintrinsics.core.image_io import load_image_u8, sample_feature_colors, sample_pixel_colors


def _rgb_image(h: int = 6, w: int = 8) -> np.ndarray:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[..., 0] = np.arange(w, dtype=np.uint8)[None, :] * 10
    arr[..., 1] = np.arange(h, dtype=np.uint8)[:, None] * 20
    arr[..., 2] = 7
    return arr


def test_load_image_u8_rgb_and_gray(tmp_path: Path) -> None:
    arr = _rgb_image()
    path = tmp_path / "a.png"
    Image.fromarray(arr).save(path)

    rgb = load_image_u8(path)
    gray = load_image_u8(path, gray=True)
    assert rgb.shape == (6, 8, 3) and rgb.dtype == np.uint8
    assert np.array_equal(rgb, arr)
    assert gray.shape == (6, 8) and gray.dtype == np.uint8


def test_sample_pixel_colors_rounds_and_clamps() -> None:
    img = _rgb_image()
    pts = np.array([[2.4, 2.6, -5.0, 100.0], [1.0, 0.4, 3.0, 100.0]])
    colors = sample_pixel_colors(img, pts)
    assert colors.shape == (4, 3)
    assert colors[0].tolist() == [20, 20, 7]
    assert colors[1].tolist() == [30, 0, 7]
    assert colors[2].tolist() == [0, 60, 7]
    assert colors[3].tolist() == [70, 100, 7]


def test_sample_feature_colors_gray() -> None:
    img = np.arange(12, dtype=np.uint8).reshape(3, 4)
    colors = sample_feature_colors(img, [PointFeature(1.0, 2.0), PointFeature(3.0, 0.0)])
    assert colors.tolist() == [9, 3]


def test_sample_pixel_colors_rejects_bad_shape() -> None:
    with pytest.raises(ValueError):
        sample_pixel_colors(_rgb_image(), np.zeros((3, 2)))
