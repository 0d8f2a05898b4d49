from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar, Iterable, Sequence, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

F = TypeVar("F", bound="PointFeature")


class FeatureFileError(RuntimeError):
    def __init__(self, message: str, path: str | Path) -> None:
        super().__init__(message)
        self.path = Path(path)


def _format_float32(v: float) -> str:
    return np.format_float_positional(np.float32(v), unique=True, trim="0")


class PointFeature:
    """
    2D image observation. Coordinates are stored in single precision.

    `coords` is the underlying float32 array, so writing through it updates
    the feature.
    """

    n_fields: ClassVar[int] = 2

    __slots__ = ("_coords",)

    def __init__(self, x: float = 0.0, y: float = 0.0) -> None:
        self._coords = np.array([x, y], dtype=np.float32)

    @property
    def x(self) -> float:
        return float(self._coords[0])

    @x.setter
    def x(self, value: float) -> None:
        self._coords[0] = value

    @property
    def y(self) -> float:
        return float(self._coords[1])

    @y.setter
    def y(self, value: float) -> None:
        self._coords[1] = value

    @property
    def coords(self) -> np.ndarray:
        return self._coords

    @coords.setter
    def coords(self, value: np.ndarray) -> None:
        self._coords[:] = np.asarray(value, dtype=np.float32).reshape(2)

    def fields(self) -> tuple[float, ...]:
        return (self.x, self.y)

    @classmethod
    def from_fields(cls: type[F], values: Sequence[float]) -> F:
        return cls(*values)

    def to_line(self) -> str:
        return " ".join(_format_float32(v) for v in self.fields())

    @classmethod
    def from_line(cls: type[F], line: str) -> F:
        tokens = line.split()
        if len(tokens) != cls.n_fields:
            raise ValueError(f"expected {cls.n_fields} fields, got {len(tokens)}")
        return cls.from_fields([float(t) for t in tokens])

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.fields() == other.fields()  # type: ignore[attr-defined]

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self.fields()}"


class SIOPointFeature(PointFeature):
    """
    Scale-invariant oriented point feature.

    - `scale`: radius in pixels (0 when unset)
    - `orientation`: radians, kept as given (no reduction modulo 2 pi)
    """

    n_fields: ClassVar[int] = 4

    __slots__ = ("_scale", "_orientation")

    def __init__(self, x: float = 0.0, y: float = 0.0, scale: float = 0.0, orientation: float = 0.0) -> None:
        super().__init__(x, y)
        self._scale = np.float32(scale)
        self._orientation = np.float32(orientation)

    @property
    def scale(self) -> float:
        return float(self._scale)

    @scale.setter
    def scale(self, value: float) -> None:
        self._scale = np.float32(value)

    @property
    def orientation(self) -> float:
        return float(self._orientation)

    @orientation.setter
    def orientation(self, value: float) -> None:
        self._orientation = np.float32(value)

    def orientation_vector(self) -> np.ndarray:
        """Unit vector pointing along the feature orientation."""
        o = self.orientation
        return np.array([np.cos(o), np.sin(o)], dtype=np.float32)

    def scaled_orientation_vector(self) -> np.ndarray:
        """Orientation vector scaled to the feature scale."""
        return np.float32(self.scale) * self.orientation_vector()

    def fields(self) -> tuple[float, ...]:
        return (self.x, self.y, self.scale, self.orientation)


def load_feats_from_file(path: str | Path, feature_type: type[F] = PointFeature) -> list[F]:  # type: ignore[assignment]
    """
    Read one feature per line ("x y" or "x y scale orientation"). Blank lines are skipped.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FeatureFileError(f"Can't load features file, can't open '{path}'", path) from e

    feats: list[F] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            feats.append(feature_type.from_line(line))
        except ValueError as e:
            raise FeatureFileError(f"Can't load features file, '{path}' is incorrect (line {lineno}: {e})", path) from e
    logger.info("loaded %d %s from %s", len(feats), feature_type.__name__, path)
    return feats


def save_feats_to_file(path: str | Path, features: Iterable[PointFeature]) -> None:
    path = Path(path)
    lines = [f.to_line() for f in features]
    text = "".join(line + "\n" for line in lines)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise FeatureFileError(f"Can't save features file, '{path}' could not be written", path) from e
    logger.info("saved %d features to %s", len(lines), path)


def points_to_mat(features: Sequence[PointFeature], dtype: type = np.float64) -> np.ndarray:
    """Pack feature positions column-wise into a (2,N) matrix."""
    m = np.empty((2, len(features)), dtype=dtype)
    for i, feat in enumerate(features):
        m[0, i] = feat.x
        m[1, i] = feat.y
    return m
