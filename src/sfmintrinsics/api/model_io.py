from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sfmintrinsics.core.intrinsics import EIntrinsic, IntrinsicBase, IntrinsicRecordError, create_intrinsic

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "sfmintrinsics.intrinsic.v1"


def intrinsic_to_dict(intrinsic: IntrinsicBase) -> dict[str, Any]:
    record: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "type": intrinsic.get_type().tag,
    }
    record.update(intrinsic.to_dict())
    return record


def intrinsic_from_dict(data: dict[str, Any]) -> IntrinsicBase:
    """
    Rebuild an intrinsic from its record, dispatching on the "type" tag.

    Records without "schema_version" are accepted as legacy. Optional fields
    missing from old records fall back to their defaults.
    """
    schema_version = data.get("schema_version")
    if schema_version is None:
        logger.debug("intrinsic record has no schema_version, reading as legacy")
    elif schema_version != SCHEMA_VERSION:
        raise IntrinsicRecordError(f"unsupported intrinsic schema: {schema_version!r}")

    tag = data.get("type")
    if tag is None:
        raise IntrinsicRecordError("type is required")
    try:
        intrinsic_type = EIntrinsic.from_string(str(tag))
    except ValueError as e:
        raise IntrinsicRecordError(str(e)) from e

    intrinsic = create_intrinsic(intrinsic_type)
    intrinsic.load_dict(data)
    return intrinsic


def save_intrinsic(path: Path, intrinsic: IntrinsicBase) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(intrinsic_to_dict(intrinsic), indent=2, sort_keys=True), encoding="utf-8")
    return path


def load_intrinsic(path: Path) -> IntrinsicBase:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise IntrinsicRecordError(f"{path} does not hold an intrinsic record")
    return intrinsic_from_dict(data)
