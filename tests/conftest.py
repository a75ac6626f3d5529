"""Shared scene fixtures."""
from __future__ import annotations

import numpy as np
import pytest

from hrsf.colors import floats_from_bits
from hrsf.geometry import BillboardGeometry, NumpyGeometryStore, Shape, TriangleGeometry
from hrsf.model import Material, MeshReference, SceneDocument


def make_triangle_mesh(material_ids: list[int]) -> TriangleGeometry:
    vertices = np.asarray(
        [
            (0.0, 0.0, 0.0),
            (1.0, 0.0, 1.0),
            (0.0, 1.0, 0.0),
        ],
        dtype=np.float32,
    )
    return TriangleGeometry(
        attributes=("position",),
        vertices=vertices,
        indices=[0, 1, 2],
        shapes=[Shape(0, 3, material_id) for material_id in material_ids],
    )


def make_billboard_mesh(material_ids: list[int]) -> BillboardGeometry:
    count = len(material_ids)
    vertices = np.zeros((count, 4), dtype=np.float32)
    vertices[:, 0] = np.arange(count, dtype=np.float32)
    vertices[:, 3] = floats_from_bits(np.asarray(material_ids, dtype=np.uint32))
    return BillboardGeometry(attributes=("position", "material"), vertices=vertices)


def billboard_material_ids(blob: BillboardGeometry) -> list[int]:
    return [int(v) for v in blob.vertices[:, 3].view(np.uint32)]


def make_document(material_count: int, meshes: list) -> SceneDocument:
    return SceneDocument(
        meshes=[MeshReference(geometry=blob) for blob in meshes],
        materials=[Material(name=f"mat{i}") for i in range(material_count)],
    )


@pytest.fixture
def store() -> NumpyGeometryStore:
    return NumpyGeometryStore()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in (
        "HRSF_JSON_INDENT",
        "HRSF_SINGLE_FILE",
        "HRSF_GEOMETRY_BACKEND",
        "HRSF_VERIFY_ON_SAVE",
        "HRSF_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
