from __future__ import annotations


def test_public_api_exports() -> None:
    import sfmintrinsics as sf

    for name in (
        "IntrinsicBase",
        "Pinhole",
        "PinholeRadialK1",
        "PinholeRadialK3",
        "PinholeBrownT2",
        "PinholeFisheye",
        "PinholeFisheye1",
        "EIntrinsic",
        "create_intrinsic",
        "Pose3",
        "angle_between_rays",
        "angle_between_observations",
        "angle_between_poses",
        "PointFeature",
        "SIOPointFeature",
        "load_feats_from_file",
        "save_feats_to_file",
        "points_to_mat",
        "intrinsic_to_dict",
        "intrinsic_from_dict",
        "save_intrinsic",
        "load_intrinsic",
        "group_shared_intrinsics",
    ):
        assert hasattr(sf, name), name
