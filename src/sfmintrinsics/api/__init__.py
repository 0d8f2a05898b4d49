from sfmintrinsics.api.grouping import group_shared_intrinsics
from sfmintrinsics.api.model_io import intrinsic_from_dict, intrinsic_to_dict, load_intrinsic, save_intrinsic

__all__ = [
    "group_shared_intrinsics",
    "intrinsic_from_dict",
    "intrinsic_to_dict",
    "load_intrinsic",
    "save_intrinsic",
]
