from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np
from PIL import Image

from sfmintrinsics.core.features import PointFeature, points_to_mat


def load_image_u8(path: str | Path, gray: bool = False) -> np.ndarray:
    """
    Load an image as uint8, (H,W) when `gray` else (H,W,3) RGB.
    """
    with Image.open(Path(path)) as im:
        im = im.convert("L" if gray else "RGB")
        arr = np.array(im, dtype=np.uint8)
    return arr


def sample_pixel_colors(image: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Nearest-pixel colors at the columns of a (2,N) pixel matrix.

    Points outside the image are clamped to the border. Returns (N,C) for a
    color image, (N,) for a gray one.
    """
    image = np.asarray(image)
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[0] != 2:
        raise ValueError("points must be a (2,N) matrix")
    h, w = image.shape[:2]
    xi = np.clip(np.rint(pts[0]).astype(np.int64), 0, w - 1)
    yi = np.clip(np.rint(pts[1]).astype(np.int64), 0, h - 1)
    return image[yi, xi]


def sample_feature_colors(image: np.ndarray, features: Sequence[PointFeature]) -> np.ndarray:
    return sample_pixel_colors(image, points_to_mat(features))
