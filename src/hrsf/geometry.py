from __future__ import annotations

"""Geometry blob store: the narrow interface the scene codec uses for meshes.

Blobs are opaque to the codec. Two encodings exist:

  TriangleGeometry   indexed triangles split into shapes, one material id per shape
  BillboardGeometry  point sprites, one material id per vertex stored in a float32
                     ``material`` attribute slot as the raw bits of a uint32

The ``NumpyGeometryStore`` backend persists blobs as ``.npz`` archives.
"""

import logging
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Sequence, Union

import numpy as np

from .errors import FormatError, SceneIOError, ValidationError

logger = logging.getLogger("hrsf.geometry")

ATTRIBUTE_WIDTHS: dict[str, int] = {
    "position": 3,
    "normal": 3,
    "texcoord0": 2,
    "color": 3,
    "material": 1,
}


class MeshType(Enum):
    TRIANGLE = "Triangle"
    BILLBOARD = "Billboard"


@dataclass(frozen=True)
class Shape:
    """Sub-range of a triangle index buffer drawn with one material."""

    index_start: int
    index_count: int
    material_id: int


def vertex_stride(attributes: Sequence[str]) -> int:
    try:
        return sum(ATTRIBUTE_WIDTHS[name] for name in attributes)
    except KeyError as exc:
        raise FormatError(f"unknown vertex attribute {exc.args[0]!r}", field="attributes") from exc


def attribute_offset(attributes: Sequence[str], name: str) -> int:
    offset = 0
    for attribute in attributes:
        if attribute == name:
            return offset
        offset += ATTRIBUTE_WIDTHS[attribute]
    raise KeyError(name)


def _as_vertex_array(vertices: np.ndarray | Sequence[float], attributes: Sequence[str]) -> np.ndarray:
    stride = vertex_stride(attributes)
    arr = np.array(vertices, dtype=np.float32, copy=True)
    if arr.ndim == 1:
        if arr.size % stride:
            raise FormatError(
                f"vertex buffer of {arr.size} floats is not a multiple of stride {stride}",
                field="vertices",
            )
        arr = arr.reshape(-1, stride)
    return arr


@dataclass(eq=False)
class TriangleGeometry:
    attributes: tuple[str, ...]
    vertices: np.ndarray
    indices: np.ndarray
    shapes: list[Shape] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.attributes = tuple(self.attributes)
        self.vertices = _as_vertex_array(self.vertices, self.attributes)
        self.indices = np.array(self.indices, dtype=np.uint32, copy=True).reshape(-1)
        self.shapes = [
            shape if isinstance(shape, Shape) else Shape(*shape) for shape in self.shapes
        ]

    @property
    def mesh_type(self) -> MeshType:
        return MeshType.TRIANGLE

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TriangleGeometry):
            return NotImplemented
        return (
            self.attributes == other.attributes
            and np.array_equal(self.vertices, other.vertices)
            and np.array_equal(self.indices, other.indices)
            and self.shapes == other.shapes
        )


@dataclass(eq=False)
class BillboardGeometry:
    attributes: tuple[str, ...]
    vertices: np.ndarray

    def __post_init__(self) -> None:
        self.attributes = tuple(self.attributes)
        if "material" not in self.attributes:
            raise FormatError("billboard geometry requires a material attribute", field="attributes")
        self.vertices = _as_vertex_array(self.vertices, self.attributes)

    @property
    def mesh_type(self) -> MeshType:
        return MeshType.BILLBOARD

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BillboardGeometry):
            return NotImplemented
        # bitwise compare so material slots holding NaN patterns still match
        return (
            self.attributes == other.attributes
            and self.vertices.shape == other.vertices.shape
            and np.array_equal(self.vertices.view(np.uint32), other.vertices.view(np.uint32))
        )


GeometryBlob = Union[TriangleGeometry, BillboardGeometry]


class GeometryStore(ABC):
    @property
    @abstractmethod
    def extension(self) -> str:
        """File extension including the dot, e.g. '.npz'."""

    @abstractmethod
    def load(self, path: str | Path) -> GeometryBlob:
        """Read one blob from disk."""

    @abstractmethod
    def save(self, blob: GeometryBlob, path: str | Path) -> None:
        """Write one blob to disk."""

    @abstractmethod
    def verify(self, blob: GeometryBlob) -> None:
        """Raise ValidationError on structural corruption."""

    @abstractmethod
    def get_shapes(self, blob: TriangleGeometry) -> list[Shape]:
        """Live shape list of a triangle blob."""

    @abstractmethod
    def get_material_attribute_buffer(self, blob: BillboardGeometry) -> np.ndarray:
        """Live float32 view of the per-vertex material slot."""


class NumpyGeometryStore(GeometryStore):
    @property
    def extension(self) -> str:
        return ".npz"

    def load(self, path: str | Path) -> GeometryBlob:
        path = Path(path)
        try:
            with open(path, "rb") as f:
                with np.load(f, allow_pickle=False) as archive:
                    payload = {key: archive[key] for key in archive.files}
        except OSError as exc:
            raise SceneIOError(f"could not open {path}: {exc}", path) from exc
        except (ValueError, zipfile.BadZipFile) as exc:
            raise FormatError(f"not a geometry archive: {exc}", filename=path) from exc

        for key in ("kind", "attributes", "vertices"):
            if key not in payload:
                raise FormatError(f"missing field '{key}'", field=key, filename=path)

        kind = str(payload["kind"])
        attributes = tuple(str(name) for name in payload["attributes"])
        if kind == MeshType.TRIANGLE.value:
            shapes_arr = payload.get("shapes", np.empty((0, 3), dtype=np.uint32))
            blob: GeometryBlob = TriangleGeometry(
                attributes=attributes,
                vertices=payload["vertices"],
                indices=payload.get("indices", np.empty((0,), dtype=np.uint32)),
                shapes=[Shape(int(s[0]), int(s[1]), int(s[2])) for s in shapes_arr.reshape(-1, 3)],
            )
        elif kind == MeshType.BILLBOARD.value:
            blob = BillboardGeometry(attributes=attributes, vertices=payload["vertices"])
        else:
            raise FormatError(f"unknown mesh type {kind!r}", field="kind", filename=path)

        logger.debug(f"Loaded {kind} geometry with {len(blob.vertices)} vertices from {path}")
        return blob

    def save(self, blob: GeometryBlob, path: str | Path) -> None:
        path = Path(path)
        arrays: dict[str, np.ndarray] = {
            "kind": np.asarray(blob.mesh_type.value),
            "attributes": np.asarray(blob.attributes, dtype=str),
            "vertices": np.asarray(blob.vertices, dtype=np.float32),
        }
        if isinstance(blob, TriangleGeometry):
            arrays["indices"] = np.asarray(blob.indices, dtype=np.uint32)
            arrays["shapes"] = np.asarray(
                [(s.index_start, s.index_count, s.material_id) for s in blob.shapes],
                dtype=np.uint32,
            ).reshape(-1, 3)
        try:
            with open(path, "wb") as f:
                np.savez(f, **arrays)
        except OSError as exc:
            raise SceneIOError(f"could not open {path}: {exc}", path) from exc
        logger.debug(f"Saved {blob.mesh_type.value} geometry to {path}")

    def verify(self, blob: GeometryBlob) -> None:
        stride = vertex_stride(blob.attributes)
        if blob.vertices.ndim != 2 or blob.vertices.shape[1] != stride:
            raise ValidationError(
                f"vertex buffer shape {blob.vertices.shape} does not match stride {stride}"
            )
        if isinstance(blob, BillboardGeometry):
            return

        vertex_count = blob.vertices.shape[0]
        if blob.indices.size % 3:
            raise ValidationError(f"index count {blob.indices.size} is not a multiple of 3")
        if blob.indices.size and int(blob.indices.max()) >= vertex_count:
            raise ValidationError(
                f"index {int(blob.indices.max())} out of bound for {vertex_count} vertices"
            )
        for number, shape in enumerate(blob.shapes):
            if shape.index_start + shape.index_count > blob.indices.size:
                raise ValidationError(
                    f"shape {number} range [{shape.index_start}, "
                    f"{shape.index_start + shape.index_count}) exceeds index buffer"
                )

    def get_shapes(self, blob: TriangleGeometry) -> list[Shape]:
        return blob.shapes

    def get_material_attribute_buffer(self, blob: BillboardGeometry) -> np.ndarray:
        return blob.vertices[:, attribute_offset(blob.attributes, "material")]


def create_geometry_store(backend: str = "numpy") -> GeometryStore:
    normalized = backend.strip().lower()
    if normalized in {"numpy", "npz"}:
        return NumpyGeometryStore()
    raise ValueError(f"Unsupported geometry backend: {backend!r}. Supported: numpy")
