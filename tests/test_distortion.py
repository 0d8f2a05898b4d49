from __future__ import annotations

import numpy as np
import pytest

from sfmintrinsics.core.distortion import (
    BrownT2Distortion,
    Distortion,
    Fisheye1Distortion,
    FisheyeDistortion,
    InversionParams,
    RadialK1Distortion,
    RadialK3Distortion,
)

DISTORTIONS: list[Distortion] = [
    RadialK1Distortion(k1=-0.15),
    RadialK3Distortion(k1=-0.2, k2=0.05, k3=-0.01),
    BrownT2Distortion(k1=-0.2, k2=0.05, k3=-0.01, t1=0.001, t2=-0.002),
    FisheyeDistortion(k1=0.05, k2=-0.02, k3=0.004, k4=-0.001),
    Fisheye1Distortion(k1=0.9),
]


def _plane_points(n: int = 500, extent: float = 0.6, seed: int = 0) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    return rng.uniform(-extent, extent, size=n), rng.uniform(-extent, extent, size=n)


@pytest.mark.parametrize("dist", DISTORTIONS, ids=lambda d: type(d).__name__)
def test_undistort_inverts_distort(dist: Distortion) -> None:
    x, y = _plane_points()
    xd, yd = dist.distort(x, y)
    x2, y2 = dist.undistort(xd, yd)
    assert np.max(np.abs(x2 - x)) < 1e-8
    assert np.max(np.abs(y2 - y)) < 1e-8


@pytest.mark.parametrize("dist", DISTORTIONS, ids=lambda d: type(d).__name__)
def test_origin_is_fixed(dist: Distortion) -> None:
    xd, yd = dist.distort(np.array(0.0), np.array(0.0))
    assert float(xd) == 0.0 and float(yd) == 0.0
    x, y = dist.undistort(np.array(0.0), np.array(0.0))
    assert float(x) == 0.0 and float(y) == 0.0


@pytest.mark.parametrize("cls", [RadialK1Distortion, RadialK3Distortion, BrownT2Distortion, FisheyeDistortion])
def test_zero_coefficients_are_identity_for_polynomial_models(cls: type[Distortion]) -> None:
    dist = cls()
    x, y = _plane_points(50, extent=0.3)
    xd, yd = dist.distort(x, y)
    if cls is FisheyeDistortion:
        # Equidistant projection: theta_d = atan(r) even without coefficients.
        r = np.hypot(x, y)
        assert np.allclose(np.hypot(xd, yd), np.arctan(r))
    else:
        assert np.allclose(xd, x) and np.allclose(yd, y)


def test_fisheye1_with_zero_fov_is_identity() -> None:
    dist = Fisheye1Distortion()
    x, y = _plane_points(20)
    xd, yd = dist.distort(x, y)
    assert np.array_equal(xd, x) and np.array_equal(yd, y)


@pytest.mark.parametrize("dist", DISTORTIONS, ids=lambda d: type(d).__name__)
def test_coeffs_roundtrip(dist: Distortion) -> None:
    assert type(dist).from_coeffs(dist.coeffs()) == dist
    assert len(dist.coeffs()) == type(dist).n_coeffs()


def test_from_coeffs_rejects_wrong_count() -> None:
    with pytest.raises(ValueError):
        BrownT2Distortion.from_coeffs([0.1, 0.2])


def test_inversion_cap_returns_best_estimate() -> None:
    dist = RadialK3Distortion(k1=-0.2, k2=0.05, k3=-0.01)
    x, y = _plane_points(100)
    xd, yd = dist.distort(x, y)
    x1, y1 = dist.undistort(xd, yd, InversionParams(max_iterations=1))
    assert np.all(np.isfinite(x1)) and np.all(np.isfinite(y1))
    err_1 = np.max(np.abs(x1 - x))
    x20, _ = dist.undistort(xd, yd, InversionParams(max_iterations=20))
    assert np.max(np.abs(x20 - x)) < err_1


def test_default_inversion_converges_for_strong_barrel_distortion() -> None:
    dist = RadialK1Distortion(k1=-0.3)
    xd, yd = dist.distort(np.array(0.6), np.array(0.6))
    x, y = dist.undistort(xd, yd)
    assert abs(float(x) - 0.6) < 1e-9
    assert abs(float(y) - 0.6) < 1e-9

    g = np.linspace(-0.6, 0.6, 25)
    gx, gy = np.meshgrid(g, g)
    x2, y2 = dist.undistort(*dist.distort(gx, gy))
    assert np.max(np.abs(x2 - gx)) < 1e-9
    assert np.max(np.abs(y2 - gy)) < 1e-9


def test_fisheye1_is_continuous_at_origin() -> None:
    dist = Fisheye1Distortion(k1=0.9)
    tiny = np.array([0.0, 1e-13, 1e-7])
    xd, _ = dist.distort(tiny, np.zeros(3))
    limit = 2.0 * np.tan(0.45) / 0.9
    assert np.allclose(xd[1:] / tiny[1:], limit, rtol=1e-9)
    x, _ = dist.undistort(tiny, np.zeros(3))
    assert np.allclose(x[1:] / tiny[1:], 1.0 / limit, rtol=1e-9)
    assert xd[0] == 0.0 and x[0] == 0.0


def test_brown_matches_opencv() -> None:
    cv2 = pytest.importorskip("cv2")
    dist = BrownT2Distortion(k1=-0.2, k2=0.05, k3=-0.01, t1=0.001, t2=-0.002)
    x, y = _plane_points(100, extent=0.5)
    xd, yd = dist.distort(x, y)

    obj = np.stack([x, y, np.ones_like(x)], axis=1).reshape(-1, 1, 3)
    K = np.eye(3, dtype=np.float64)
    dist_cv = np.array([dist.k1, dist.k2, dist.t1, dist.t2, dist.k3], dtype=np.float64)
    uv, _ = cv2.projectPoints(obj, np.zeros(3), np.zeros(3), K, dist_cv)
    uv = uv.reshape(-1, 2)
    assert np.max(np.abs(uv[:, 0] - xd)) < 1e-9
    assert np.max(np.abs(uv[:, 1] - yd)) < 1e-9


def test_fisheye_matches_opencv() -> None:
    cv2 = pytest.importorskip("cv2")
    dist = FisheyeDistortion(k1=0.05, k2=-0.02, k3=0.004, k4=-0.001)
    x, y = _plane_points(100, extent=0.8)
    xd, yd = dist.distort(x, y)

    pts = np.stack([x, y], axis=1).reshape(-1, 1, 2)
    K = np.eye(3, dtype=np.float64)
    D = np.array(dist.coeffs(), dtype=np.float64).reshape(4, 1)
    uv = cv2.fisheye.distortPoints(pts, K, D).reshape(-1, 2)
    assert np.max(np.abs(uv[:, 0] - xd)) < 1e-9
    assert np.max(np.abs(uv[:, 1] - yd)) < 1e-9
