from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from sfmintrinsics.core.intrinsics import IntrinsicBase

_ANGLE_CLAMP_EPS = 1e-8


@dataclass(frozen=True)
class Pose3:
    """
    Rigid transform from world to camera coordinates.

    Convention:
    - `rotation` is the world->camera rotation R (3,3)
    - `center` is the camera center C in world coordinates (3,)
    - a world point maps to X_cam = R (X - C), so the translation is t = -R C
    """

    rotation: np.ndarray  # (3,3)
    center: np.ndarray  # (3,)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation", np.asarray(self.rotation, dtype=np.float64).reshape(3, 3))
        object.__setattr__(self, "center", np.asarray(self.center, dtype=np.float64).reshape(3))

    @classmethod
    def identity(cls) -> "Pose3":
        return cls(np.eye(3, dtype=np.float64), np.zeros((3,), dtype=np.float64))

    @classmethod
    def from_rvec_tvec(cls, rvec: np.ndarray, tvec: np.ndarray) -> "Pose3":
        """Build a pose from an OpenCV-style rotation vector and translation (X_cam = R X + t)."""
        from scipy.spatial.transform import Rotation as Rot  # type: ignore

        Rm = Rot.from_rotvec(np.asarray(rvec, dtype=np.float64).reshape(3)).as_matrix()
        t = np.asarray(tvec, dtype=np.float64).reshape(3)
        return cls(Rm, -Rm.T @ t)

    @property
    def translation(self) -> np.ndarray:
        return -self.rotation @ self.center

    def inverse(self) -> "Pose3":
        return Pose3(self.rotation.T, self.translation)

    def __call__(self, X: np.ndarray) -> np.ndarray:
        """Apply the transform to a point (3,) or to the columns of a (3,N) matrix."""
        X = np.asarray(X, dtype=np.float64)
        if X.ndim == 1:
            return self.rotation @ (X - self.center)
        return self.rotation @ (X - self.center.reshape(3, 1))


def angle_between_rays(ray1: np.ndarray, ray2: np.ndarray) -> float:
    """
    Angle in degrees between two direction vectors (not necessarily unit length).

    The cosine is clamped to [-1 + 1e-8, 1 - 1e-8] so round-off never leaves
    the arccos domain.
    """
    ray1 = np.asarray(ray1, dtype=np.float64).reshape(3)
    ray2 = np.asarray(ray2, dtype=np.float64).reshape(3)
    mag = float(np.linalg.norm(ray1) * np.linalg.norm(ray2))
    cos_angle = float(np.dot(ray1, ray2)) / mag
    cos_angle = min(max(cos_angle, -1.0 + _ANGLE_CLAMP_EPS), 1.0 - _ANGLE_CLAMP_EPS)
    return math.degrees(math.acos(cos_angle))


def angle_between_observations(
    pose1: Pose3,
    intrinsic1: IntrinsicBase,
    pose2: Pose3,
    intrinsic2: IntrinsicBase,
    x1: np.ndarray,
    x2: np.ndarray,
) -> float:
    """
    Angle in degrees between the world-frame rays of two pixel observations.

    ray_i = normalize(R_i^T @ bearing_i(x_i)); the camera centers do not matter.
    """
    ray1 = pose1.rotation.T @ intrinsic1(x1)
    ray2 = pose2.rotation.T @ intrinsic2(x2)
    return angle_between_rays(ray1 / np.linalg.norm(ray1), ray2 / np.linalg.norm(ray2))


def angle_between_poses(pose1: Pose3, pose2: Pose3, pt3d: np.ndarray) -> float:
    """Angle in degrees at `pt3d` between the rays coming from the two camera centers."""
    pt3d = np.asarray(pt3d, dtype=np.float64).reshape(3)
    return angle_between_rays(pt3d - pose1.center, pt3d - pose2.center)
