from sfmintrinsics.api import group_shared_intrinsics, intrinsic_from_dict, intrinsic_to_dict, load_intrinsic, save_intrinsic
from sfmintrinsics.core.features import (
    FeatureFileError,
    PointFeature,
    SIOPointFeature,
    load_feats_from_file,
    points_to_mat,
    save_feats_to_file,
)
from sfmintrinsics.core.geometry import Pose3, angle_between_observations, angle_between_poses, angle_between_rays
from sfmintrinsics.core.intrinsics import (
    EIntrinsic,
    IntrinsicBase,
    IntrinsicRecordError,
    Pinhole,
    PinholeBrownT2,
    PinholeFisheye,
    PinholeFisheye1,
    PinholeRadialK1,
    PinholeRadialK3,
    create_intrinsic,
)

__all__ = [
    "EIntrinsic",
    "FeatureFileError",
    "IntrinsicBase",
    "IntrinsicRecordError",
    "Pinhole",
    "PinholeBrownT2",
    "PinholeFisheye",
    "PinholeFisheye1",
    "PinholeRadialK1",
    "PinholeRadialK3",
    "PointFeature",
    "Pose3",
    "SIOPointFeature",
    "angle_between_observations",
    "angle_between_poses",
    "angle_between_rays",
    "create_intrinsic",
    "group_shared_intrinsics",
    "intrinsic_from_dict",
    "intrinsic_to_dict",
    "load_feats_from_file",
    "load_intrinsic",
    "points_to_mat",
    "save_feats_to_file",
    "save_intrinsic",
]
