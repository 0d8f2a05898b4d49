"""
Image undistortion from a camera intrinsic model.

For every pixel of the undistorted output grid, `get_d_pixel` gives the
pixel to sample in the distorted source image. The resulting LUTs
(map_x/map_y) are applied with `cv2.remap`; build them once per intrinsic
when undistorting many images.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import cv2
import numpy as np

from sfmintrinsics.core.intrinsics import IntrinsicBase

_INTERPOLATION = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "lanczos4": cv2.INTER_LANCZOS4,
}


@dataclass(frozen=True)
class UndistortParams:
    interpolation: Literal["nearest", "linear", "cubic", "lanczos4"] = "linear"
    border_value: float = 0.0


def build_undistort_maps(intrinsic: IntrinsicBase) -> tuple[np.ndarray, np.ndarray]:
    """Return float32 (map_x, map_y), each shaped (height, width)."""
    if not intrinsic.is_valid():
        raise ValueError("intrinsic must be valid (non-zero size) to build undistortion maps")
    w, h = intrinsic.width, intrinsic.height
    uu, vv = np.meshgrid(np.arange(w, dtype=np.float64), np.arange(h, dtype=np.float64))
    pix = np.stack([uu.reshape(-1), vv.reshape(-1)], axis=0)
    src = intrinsic.get_d_pixel(pix)
    map_x = src[0].reshape(h, w).astype(np.float32)
    map_y = src[1].reshape(h, w).astype(np.float32)
    return map_x, map_y


def undistort_image(
    image: np.ndarray,
    intrinsic: IntrinsicBase,
    params: UndistortParams | None = None,
) -> np.ndarray:
    if params is None:
        params = UndistortParams()
    if params.interpolation not in _INTERPOLATION:
        raise ValueError("interpolation must be nearest|linear|cubic|lanczos4")
    image = np.asarray(image)
    if image.shape[:2] != (intrinsic.height, intrinsic.width):
        raise ValueError(
            f"image size {image.shape[1]}x{image.shape[0]} does not match intrinsic "
            f"{intrinsic.width}x{intrinsic.height}"
        )
    if not intrinsic.have_disto():
        return image.copy()

    map_x, map_y = build_undistort_maps(intrinsic)
    return cv2.remap(
        image,
        map_x,
        map_y,
        interpolation=_INTERPOLATION[params.interpolation],
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=params.border_value,
    )
