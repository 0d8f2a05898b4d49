from __future__ import annotations

from sfmintrinsics.api.grouping import group_shared_intrinsics
from sfmintrinsics.core.intrinsics import Pinhole, PinholeRadialK1


def test_groups_identical_intrinsics() -> None:
    base = PinholeRadialK1(640, 480, 500.0, 320.0, 240.0, [-0.1], serial_number="cam0")
    other_serial = PinholeRadialK1(640, 480, 500.0, 320.0, 240.0, [-0.1], serial_number="cam1")
    views = {
        "v0": base,
        "v1": other_serial,
        "v2": base.clone(),
        "v3": Pinhole(640, 480, 500.0, 320.0, 240.0, serial_number="cam0"),
        "v4": other_serial.clone(),
    }
    assert group_shared_intrinsics(views) == [["v0", "v2"], ["v1", "v4"], ["v3"]]


def test_initial_focal_length_does_not_split_groups() -> None:
    a = Pinhole(640, 480, 500.0, 320.0, 240.0)
    b = a.clone()
    b.initial_focal_length_pix = 480.0
    assert group_shared_intrinsics({1: a, 2: b}) == [[1, 2]]


def test_empty_input() -> None:
    assert group_shared_intrinsics({}) == []
