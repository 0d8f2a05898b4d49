from __future__ import annotations

from typing import Hashable, Mapping, TypeVar

from sfmintrinsics.core.intrinsics import IntrinsicBase

K = TypeVar("K", bound=Hashable)


def group_shared_intrinsics(intrinsics: Mapping[K, IntrinsicBase]) -> list[list[K]]:
    """
    Cluster keys whose intrinsics are identical (same type, size, serial number and parameters).

    Buckets by `hash_value()` then confirms with `==`, so hash collisions never merge
    distinct cameras. Groups and their members follow the input order.
    """
    buckets: dict[int, list[tuple[IntrinsicBase, list[K]]]] = {}
    groups: list[list[K]] = []
    for key, intrinsic in intrinsics.items():
        candidates = buckets.setdefault(intrinsic.hash_value(), [])
        for ref, members in candidates:
            if ref == intrinsic:
                members.append(key)
                break
        else:
            members = [key]
            candidates.append((intrinsic, members))
            groups.append(members)
    return groups
