from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, Sequence

import numpy as np

logger = logging.getLogger(__name__)

_EPS_RADIUS = 1e-12


@dataclass(frozen=True)
class InversionParams:
    """
    Bounds for the iterative inverse of a distortion field.

    `tolerance` is measured on the normalized camera plane (largest update of
    the last step). When `max_iterations` is reached first, the best estimate
    is returned as is.
    """

    max_iterations: int = 100
    tolerance: float = 1e-10


def _invert_fixed_point(
    distort: Callable[[np.ndarray, np.ndarray], tuple[np.ndarray, np.ndarray]],
    xd: np.ndarray,
    yd: np.ndarray,
    params: InversionParams,
) -> tuple[np.ndarray, np.ndarray]:
    xd = np.asarray(xd, dtype=np.float64)
    yd = np.asarray(yd, dtype=np.float64)
    x = xd.copy()
    y = yd.copy()
    for _ in range(int(params.max_iterations)):
        x_est, y_est = distort(x, y)
        dx = xd - x_est
        dy = yd - y_est
        x += dx
        y += dy
        step = float(np.max(np.abs(dx), initial=0.0) + np.max(np.abs(dy), initial=0.0))
        if step < params.tolerance:
            break
    else:
        logger.debug("distortion inversion hit %d iterations without converging", params.max_iterations)
    return x, y


class Distortion:
    """
    Distortion field on normalized camera coordinates (x=X/Z, y=Y/Z).

    Subclasses hold their coefficients as fields and list their names in
    `coeff_names`, which fixes the order used by `coeffs()`/`from_coeffs()`.
    """

    coeff_names: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def n_coeffs(cls) -> int:
        return len(cls.coeff_names)

    @classmethod
    def from_coeffs(cls, coeffs: Sequence[float]) -> "Distortion":
        if len(coeffs) != cls.n_coeffs():
            raise ValueError(f"{cls.__name__} expects {cls.n_coeffs()} coefficients, got {len(coeffs)}")
        return cls(*(float(c) for c in coeffs))

    def coeffs(self) -> list[float]:
        return [float(getattr(self, name)) for name in self.coeff_names]

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError

    def undistort(
        self, xd: np.ndarray, yd: np.ndarray, params: InversionParams = InversionParams()
    ) -> tuple[np.ndarray, np.ndarray]:
        return _invert_fixed_point(self.distort, xd, yd, params)


@dataclass(frozen=True)
class RadialK1Distortion(Distortion):
    """Single-coefficient radial model: p_d = p (1 + k1 r^2)."""

    k1: float = 0.0

    coeff_names: ClassVar[tuple[str, ...]] = ("k1",)

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        radial = 1.0 + self.k1 * (x * x + y * y)
        return x * radial, y * radial


@dataclass(frozen=True)
class RadialK3Distortion(Distortion):
    """Radial model with three even coefficients: p_d = p (1 + k1 r^2 + k2 r^4 + k3 r^6)."""

    k1: float = 0.0
    k2: float = 0.0
    k3: float = 0.0

    coeff_names: ClassVar[tuple[str, ...]] = ("k1", "k2", "k3")

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        r2 = x * x + y * y
        radial = 1.0 + r2 * (self.k1 + r2 * (self.k2 + r2 * self.k3))
        return x * radial, y * radial


@dataclass(frozen=True)
class BrownT2Distortion(Distortion):
    """
    Brown-Conrady distortion: three radial and two tangential coefficients.

    Coefficient order is (k1, k2, k3, t1, t2); t1/t2 play the role of
    OpenCV's p1/p2.
    """

    k1: float = 0.0
    k2: float = 0.0
    k3: float = 0.0
    t1: float = 0.0
    t2: float = 0.0

    coeff_names: ClassVar[tuple[str, ...]] = ("k1", "k2", "k3", "t1", "t2")

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        r2 = x * x + y * y
        radial = 1.0 + r2 * (self.k1 + r2 * (self.k2 + r2 * self.k3))
        xy = x * y
        x_tan = 2.0 * self.t1 * xy + self.t2 * (r2 + 2.0 * x * x)
        y_tan = self.t1 * (r2 + 2.0 * y * y) + 2.0 * self.t2 * xy
        return x * radial + x_tan, y * radial + y_tan


@dataclass(frozen=True)
class FisheyeDistortion(Distortion):
    """
    Kannala-Brandt fisheye model with four coefficients.

    theta = atan(r), theta_d = theta (1 + k1 theta^2 + k2 theta^4 + k3 theta^6 + k4 theta^8),
    p_d = p theta_d / r.
    """

    k1: float = 0.0
    k2: float = 0.0
    k3: float = 0.0
    k4: float = 0.0

    coeff_names: ClassVar[tuple[str, ...]] = ("k1", "k2", "k3", "k4")

    def _theta_poly(self, theta2: np.ndarray) -> np.ndarray:
        return 1.0 + theta2 * (self.k1 + theta2 * (self.k2 + theta2 * (self.k3 + theta2 * self.k4)))

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        r = np.hypot(x, y)
        theta = np.arctan(r)
        theta_d = theta * self._theta_poly(theta * theta)
        big = r > _EPS_RADIUS
        scale = np.where(big, theta_d / np.where(big, r, 1.0), 1.0)
        return x * scale, y * scale

    def undistort(
        self, xd: np.ndarray, yd: np.ndarray, params: InversionParams = InversionParams()
    ) -> tuple[np.ndarray, np.ndarray]:
        xd = np.asarray(xd, dtype=np.float64)
        yd = np.asarray(yd, dtype=np.float64)
        theta_d = np.hypot(xd, yd)
        # theta_d = theta * poly(theta^2), solved for theta by fixed point.
        theta = theta_d.copy()
        for _ in range(int(params.max_iterations)):
            theta_next = theta_d / self._theta_poly(theta * theta)
            step = float(np.max(np.abs(theta_next - theta), initial=0.0))
            theta = theta_next
            if step < params.tolerance:
                break
        else:
            logger.debug("fisheye inversion hit %d iterations without converging", params.max_iterations)
        big = theta_d > _EPS_RADIUS
        scale = np.where(big, np.tan(theta) / np.where(big, theta_d, 1.0), 1.0)
        return xd * scale, yd * scale


@dataclass(frozen=True)
class Fisheye1Distortion(Distortion):
    """
    FOV fisheye model (Devernay-Faugeras) with a single field-of-view parameter k1 (radians).

    Both directions are closed form, so no iteration is involved.
    """

    k1: float = 0.0

    coeff_names: ClassVar[tuple[str, ...]] = ("k1",)

    def distort(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if abs(self.k1) < _EPS_RADIUS:
            return x.copy(), y.copy()
        two_tan = 2.0 * np.tan(0.5 * self.k1)
        r = np.hypot(x, y)
        big = r > _EPS_RADIUS
        r_safe = np.where(big, r, 1.0)
        # Near the origin the scale tends to 2 tan(k1/2) / k1.
        scale = np.where(big, np.arctan(r_safe * two_tan) / self.k1 / r_safe, two_tan / self.k1)
        return x * scale, y * scale

    def undistort(
        self, xd: np.ndarray, yd: np.ndarray, params: InversionParams = InversionParams()
    ) -> tuple[np.ndarray, np.ndarray]:
        xd = np.asarray(xd, dtype=np.float64)
        yd = np.asarray(yd, dtype=np.float64)
        if abs(self.k1) < _EPS_RADIUS:
            return xd.copy(), yd.copy()
        two_tan = 2.0 * np.tan(0.5 * self.k1)
        rd = np.hypot(xd, yd)
        big = rd > _EPS_RADIUS
        rd_safe = np.where(big, rd, 1.0)
        scale = np.where(big, np.tan(rd_safe * self.k1) / two_tan / rd_safe, self.k1 / two_tan)
        return xd * scale, yd * scale
