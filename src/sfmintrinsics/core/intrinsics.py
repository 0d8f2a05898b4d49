"""
Camera intrinsic models.

A model maps points through three planes:

  3D point --pose--> camera frame --/z--> camera plane (z=1)
           --add_disto--> distorted camera plane --cam2ima--> pixels

and exposes its tunable state as a flat parameter vector so an external
optimizer can read (`get_params`) and write (`update_from_params`) it.
"""

from __future__ import annotations

import abc
import copy
import hashlib
import logging
from enum import IntEnum
from typing import Any, ClassVar, Sequence

import numpy as np

from sfmintrinsics.core.distortion import (
    BrownT2Distortion,
    Distortion,
    Fisheye1Distortion,
    FisheyeDistortion,
    InversionParams,
    RadialK1Distortion,
    RadialK3Distortion,
)
from sfmintrinsics.core.geometry import Pose3

logger = logging.getLogger(__name__)

_MASK64 = 0xFFFFFFFFFFFFFFFF


class IntrinsicRecordError(ValueError):
    pass


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise IntrinsicRecordError(msg)


class EIntrinsic(IntEnum):
    PINHOLE_CAMERA = 1
    PINHOLE_CAMERA_RADIAL1 = 2
    PINHOLE_CAMERA_RADIAL3 = 3
    PINHOLE_CAMERA_BROWN = 4
    PINHOLE_CAMERA_FISHEYE = 5
    PINHOLE_CAMERA_FISHEYE1 = 6

    @property
    def tag(self) -> str:
        return _TYPE_TAGS[self]

    @classmethod
    def from_string(cls, tag: str) -> "EIntrinsic":
        for member, name in _TYPE_TAGS.items():
            if name == tag:
                return member
        raise ValueError(f"unknown intrinsic type: {tag!r}")


_TYPE_TAGS: dict[EIntrinsic, str] = {
    EIntrinsic.PINHOLE_CAMERA: "pinhole",
    EIntrinsic.PINHOLE_CAMERA_RADIAL1: "radial1",
    EIntrinsic.PINHOLE_CAMERA_RADIAL3: "radial3",
    EIntrinsic.PINHOLE_CAMERA_BROWN: "brown",
    EIntrinsic.PINHOLE_CAMERA_FISHEYE: "fisheye4",
    EIntrinsic.PINHOLE_CAMERA_FISHEYE1: "fisheye1",
}


def _hash_combine(seed: int, value: int) -> int:
    return (seed ^ ((value + 0x9E3779B9 + (seed << 6) + (seed >> 2)) & _MASK64)) & _MASK64


def _hash_str(s: str) -> int:
    return int.from_bytes(hashlib.blake2b(s.encode("utf-8"), digest_size=8).digest(), "little")


def _hash_float(v: float) -> int:
    # +0.0 folds -0.0 onto 0.0, which compare equal.
    return int(np.array(float(v) + 0.0, dtype=np.float64).view(np.uint64))


class IntrinsicBase(abc.ABC):
    """
    Base class for every camera intrinsic model.

    Holds the image size, the sensor serial number and the initial focal
    length guess (-1 when unknown). Everything model specific lives in the
    parameter vector returned by `get_params`.

    Instances are mutable (`update_from_params`, setters, `assign`), so they
    are not usable as dict keys; use `hash_value()` for grouping.
    """

    def __init__(self, width: int = 0, height: int = 0, serial_number: str = "") -> None:
        self.width = int(width)
        self.height = int(height)
        self.serial_number = str(serial_number)
        self.initial_focal_length_pix = -1.0

    def is_valid(self) -> bool:
        return self.width != 0 and self.height != 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntrinsicBase):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.serial_number == other.serial_number
            and self.get_type() == other.get_type()
            and self.get_params() == other.get_params()
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(width={self.width}, height={self.height}, "
            f"serial_number={self.serial_number!r}, params={self.get_params()})"
        )

    def project(self, pose: Pose3, pt3d: np.ndarray, apply_distortion: bool = True) -> np.ndarray:
        """
        Project a 3D world point (3,) or the columns of a (3,N) matrix to pixels.

        Points at zero depth are not guarded against.
        """
        X = pose(pt3d)
        p = X[:2] / X[2]
        if apply_distortion and self.have_disto():
            return self.cam2ima(self.add_disto(p))
        return self.cam2ima(p)

    def residual(self, pose: Pose3, pt3d: np.ndarray, x: np.ndarray) -> np.ndarray:
        """Observed pixel minus projected pixel."""
        return np.asarray(x, dtype=np.float64) - self.project(pose, pt3d)

    def residuals(self, pose: Pose3, X: np.ndarray, x: np.ndarray) -> np.ndarray:
        """Column-wise `residual` for a (3,N) point matrix and a (2,N) observation matrix."""
        X = np.asarray(X, dtype=np.float64)
        x = np.asarray(x, dtype=np.float64)
        if X.ndim != 2 or X.shape[0] != 3:
            raise ValueError("X must be a (3,N) matrix")
        if x.ndim != 2 or x.shape[0] != 2:
            raise ValueError("x must be a (2,N) matrix")
        if X.shape[1] != x.shape[1]:
            raise ValueError(f"column counts must match: {X.shape[1]} points vs {x.shape[1]} observations")
        return x - self.project(pose, X)

    @abc.abstractmethod
    def get_type(self) -> EIntrinsic:
        raise NotImplementedError

    @abc.abstractmethod
    def get_params(self) -> list[float]:
        """All tunable parameters, in the fixed order of the model."""
        raise NotImplementedError

    @abc.abstractmethod
    def update_from_params(self, params: Sequence[float]) -> bool:
        """Inverse of `get_params`. Returns False, leaving the model untouched, on a wrong count."""
        raise NotImplementedError

    @abc.abstractmethod
    def __call__(self, p: np.ndarray) -> np.ndarray:
        """Bearing vector (camera frame) of an image point."""
        raise NotImplementedError

    @abc.abstractmethod
    def cam2ima(self, p: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def ima2cam(self, p: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def have_disto(self) -> bool:
        return False

    @abc.abstractmethod
    def add_disto(self, p: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def get_ud_pixel(self, p: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def get_d_pixel(self, p: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def image_plane_to_camera_plane_error(self, value: float) -> float:
        raise NotImplementedError

    @abc.abstractmethod
    def get_projective_equivalent(self, pose: Pose3) -> np.ndarray:
        raise NotImplementedError

    def hash_value(self) -> int:
        """
        Deterministic 64-bit hash of type, width, height, serial number and parameters.

        Independent of PYTHONHASHSEED; recomputed on every call since the
        parameters are mutable.
        """
        seed = 0
        seed = _hash_combine(seed, int(self.get_type()))
        seed = _hash_combine(seed, self.width)
        seed = _hash_combine(seed, self.height)
        seed = _hash_combine(seed, _hash_str(self.serial_number))
        for v in self.get_params():
            seed = _hash_combine(seed, _hash_float(v))
        return seed

    def clone(self) -> "IntrinsicBase":
        return copy.deepcopy(self)

    def assign(self, other: "IntrinsicBase") -> None:
        if type(other) is not type(self):
            raise TypeError(f"cannot assign {type(other).__name__} to {type(self).__name__}")
        self.__dict__.update(copy.deepcopy(other.__dict__))

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": int(self.width),
            "height": int(self.height),
            "serialNumber": self.serial_number,
            "initialFocalLengthPix": float(self.initial_focal_length_pix),
        }

    def load_dict(self, data: dict[str, Any]) -> None:
        w_raw = data.get("width")
        h_raw = data.get("height")
        _require(w_raw is not None and h_raw is not None, "width and height are required")
        w, h = int(w_raw), int(h_raw)
        _require(w >= 0 and h >= 0, "width and height must be >= 0")
        self.width = w
        self.height = h
        # Records written before these fields existed.
        if "serialNumber" in data:
            self.serial_number = str(data["serialNumber"])
        else:
            logger.debug("record has no serialNumber, using empty string")
            self.serial_number = ""
        if "initialFocalLengthPix" in data:
            self.initial_focal_length_pix = float(data["initialFocalLengthPix"])
        else:
            logger.debug("record has no initialFocalLengthPix, using -1")
            self.initial_focal_length_pix = -1.0


class Pinhole(IntrinsicBase):
    """
    Pinhole camera with a single focal length (pixels) and a principal point.

      K = [[f, 0, ppx], [0, f, ppy], [0, 0, 1]]

    Parameter vector: [f, ppx, ppy].
    """

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        focal_length_pix: float = 0.0,
        ppx: float = 0.0,
        ppy: float = 0.0,
        serial_number: str = "",
    ) -> None:
        super().__init__(width, height, serial_number)
        self.focal = float(focal_length_pix)
        self.ppx = float(ppx)
        self.ppy = float(ppy)

    def K(self) -> np.ndarray:
        return np.array([[self.focal, 0.0, self.ppx], [0.0, self.focal, self.ppy], [0.0, 0.0, 1.0]], dtype=np.float64)

    def principal_point(self) -> np.ndarray:
        return np.array([self.ppx, self.ppy], dtype=np.float64)

    def is_valid(self) -> bool:
        return super().is_valid() and self.focal > 0.0

    def get_type(self) -> EIntrinsic:
        return EIntrinsic.PINHOLE_CAMERA

    def get_params(self) -> list[float]:
        return [self.focal, self.ppx, self.ppy]

    def update_from_params(self, params: Sequence[float]) -> bool:
        params = list(params)
        if len(params) != 3:
            logger.debug("%s rejects %d params (expected 3)", type(self).__name__, len(params))
            return False
        self.focal, self.ppx, self.ppy = (float(v) for v in params)
        return True

    def __call__(self, p: np.ndarray) -> np.ndarray:
        """
        Unit bearing vector(s) for distorted pixel(s) `p`, shape (2,) or (2,N).

        Distortion is removed here. Pass raw observed pixels: a pixel that
        already went through `get_ud_pixel` would be undistorted twice. The
        ray of an undistorted pixel is `Pinhole(...)(pixel)` with the same
        focal length and principal point.
        """
        xy = self.remove_disto(self.ima2cam(p))
        ray = np.stack([xy[0], xy[1], np.ones_like(xy[0])], axis=0)
        return ray / np.linalg.norm(ray, axis=0)

    def cam2ima(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        return np.stack([self.focal * p[0] + self.ppx, self.focal * p[1] + self.ppy], axis=0)

    def ima2cam(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        return np.stack([(p[0] - self.ppx) / self.focal, (p[1] - self.ppy) / self.focal], axis=0)

    def add_disto(self, p: np.ndarray) -> np.ndarray:
        return np.array(p, dtype=np.float64)

    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        return np.array(p, dtype=np.float64)

    def get_ud_pixel(self, p: np.ndarray) -> np.ndarray:
        return self.cam2ima(self.remove_disto(self.ima2cam(p)))

    def get_d_pixel(self, p: np.ndarray) -> np.ndarray:
        return self.cam2ima(self.add_disto(self.ima2cam(p)))

    def image_plane_to_camera_plane_error(self, value: float) -> float:
        return float(value) / self.focal

    def get_projective_equivalent(self, pose: Pose3) -> np.ndarray:
        Rt = np.hstack([pose.rotation, pose.translation.reshape(3, 1)])
        return self.K() @ Rt

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["focalLength"] = self.focal
        d["principalPoint"] = [self.ppx, self.ppy]
        return d

    def load_dict(self, data: dict[str, Any]) -> None:
        super().load_dict(data)
        focal = data.get("focalLength")
        pp = data.get("principalPoint")
        _require(focal is not None, "focalLength is required")
        _require(isinstance(pp, (list, tuple)) and len(pp) == 2, "principalPoint must be [ppx,ppy]")
        self.focal = float(focal)
        self.ppx, self.ppy = float(pp[0]), float(pp[1])


class PinholeDistorted(Pinhole):
    """
    Pinhole camera followed by a distortion field on the camera plane.

    Parameter vector: [f, ppx, ppy, *distortion coefficients].
    """

    distortion_type: ClassVar[type[Distortion]] = Distortion
    intrinsic_type: ClassVar[EIntrinsic] = EIntrinsic.PINHOLE_CAMERA

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        focal_length_pix: float = 0.0,
        ppx: float = 0.0,
        ppy: float = 0.0,
        distortion_params: Sequence[float] | None = None,
        serial_number: str = "",
        inversion: InversionParams = InversionParams(),
    ) -> None:
        super().__init__(width, height, focal_length_pix, ppx, ppy, serial_number)
        if distortion_params is None:
            distortion_params = [0.0] * self.distortion_type.n_coeffs()
        self.distortion = self.distortion_type.from_coeffs(list(distortion_params))
        self.inversion = inversion

    def get_type(self) -> EIntrinsic:
        return self.intrinsic_type

    def have_disto(self) -> bool:
        return True

    def distortion_params(self) -> list[float]:
        return self.distortion.coeffs()

    def set_distortion_params(self, coeffs: Sequence[float]) -> None:
        self.distortion = self.distortion_type.from_coeffs(list(coeffs))

    def get_params(self) -> list[float]:
        return super().get_params() + self.distortion.coeffs()

    def update_from_params(self, params: Sequence[float]) -> bool:
        params = list(params)
        expected = 3 + self.distortion_type.n_coeffs()
        if len(params) != expected:
            logger.debug("%s rejects %d params (expected %d)", type(self).__name__, len(params), expected)
            return False
        super().update_from_params(params[:3])
        self.set_distortion_params(params[3:])
        return True

    def add_disto(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        xd, yd = self.distortion.distort(p[0], p[1])
        return np.stack([xd, yd], axis=0)

    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        x, y = self.distortion.undistort(p[0], p[1], self.inversion)
        return np.stack([x, y], axis=0)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["distortionParams"] = self.distortion.coeffs()
        return d

    def load_dict(self, data: dict[str, Any]) -> None:
        super().load_dict(data)
        coeffs = data.get("distortionParams")
        n = self.distortion_type.n_coeffs()
        _require(
            isinstance(coeffs, (list, tuple)) and len(coeffs) == n,
            f"distortionParams must hold {n} values for {self.get_type().tag}",
        )
        self.set_distortion_params([float(c) for c in coeffs])


class PinholeRadialK1(PinholeDistorted):
    distortion_type = RadialK1Distortion
    intrinsic_type = EIntrinsic.PINHOLE_CAMERA_RADIAL1


class PinholeRadialK3(PinholeDistorted):
    distortion_type = RadialK3Distortion
    intrinsic_type = EIntrinsic.PINHOLE_CAMERA_RADIAL3


class PinholeBrownT2(PinholeDistorted):
    distortion_type = BrownT2Distortion
    intrinsic_type = EIntrinsic.PINHOLE_CAMERA_BROWN


class PinholeFisheye(PinholeDistorted):
    distortion_type = FisheyeDistortion
    intrinsic_type = EIntrinsic.PINHOLE_CAMERA_FISHEYE


class PinholeFisheye1(PinholeDistorted):
    distortion_type = Fisheye1Distortion
    intrinsic_type = EIntrinsic.PINHOLE_CAMERA_FISHEYE1


_INTRINSIC_CLASSES: dict[EIntrinsic, type[IntrinsicBase]] = {
    EIntrinsic.PINHOLE_CAMERA: Pinhole,
    EIntrinsic.PINHOLE_CAMERA_RADIAL1: PinholeRadialK1,
    EIntrinsic.PINHOLE_CAMERA_RADIAL3: PinholeRadialK3,
    EIntrinsic.PINHOLE_CAMERA_BROWN: PinholeBrownT2,
    EIntrinsic.PINHOLE_CAMERA_FISHEYE: PinholeFisheye,
    EIntrinsic.PINHOLE_CAMERA_FISHEYE1: PinholeFisheye1,
}


def create_intrinsic(
    intrinsic_type: EIntrinsic | str,
    width: int = 0,
    height: int = 0,
    serial_number: str = "",
) -> IntrinsicBase:
    """Factory keyed by type tag (enum member or its string name); parameters start at zero."""
    if isinstance(intrinsic_type, str):
        intrinsic_type = EIntrinsic.from_string(intrinsic_type)
    cls = _INTRINSIC_CLASSES[EIntrinsic(intrinsic_type)]
    return cls(width=width, height=height, serial_number=serial_number)
