from __future__ import annotations

import numpy as np
import pytest

from conftest import billboard_material_ids, make_billboard_mesh, make_document, make_triangle_mesh
from hrsf.dedup import (
    concatenate_documents,
    material_census,
    offset_materials,
    remove_unused_materials,
)
from hrsf.errors import ValidationError
from hrsf.model import DirectionalLight


def _shape_ids(document, mesh_index: int = 0) -> list[int]:
    return [shape.material_id for shape in document.meshes[mesh_index].geometry.shapes]


def test_census_marks_triangle_and_billboard_references(store) -> None:
    document = make_document(
        6,
        [make_triangle_mesh([0, 2]), make_billboard_mesh([5, 5, 2])],
    )
    used = material_census(document, store)
    assert used.tolist() == [True, False, True, False, False, True]


def test_remove_unused_materials_compacts_triangle_shapes(store) -> None:
    document = make_document(5, [make_triangle_mesh([0, 1, 3])])

    table = remove_unused_materials(document, store)

    assert [m.name for m in document.materials] == ["mat0", "mat1", "mat3"]
    assert _shape_ids(document) == [0, 1, 2]
    assert table is not None
    assert table.tolist() == [0, 1, -1, 2, -1]


def test_remove_unused_materials_is_idempotent(store) -> None:
    document = make_document(5, [make_triangle_mesh([0, 1, 3])])
    remove_unused_materials(document, store)
    names = [m.name for m in document.materials]
    ids = _shape_ids(document)

    assert remove_unused_materials(document, store) is None
    assert [m.name for m in document.materials] == names
    assert _shape_ids(document) == ids


def test_all_used_is_noop(store) -> None:
    document = make_document(2, [make_triangle_mesh([1, 0])])
    materials = document.materials
    assert remove_unused_materials(document, store) is None
    assert document.materials is materials
    assert _shape_ids(document) == [1, 0]


def test_billboard_indices_are_remapped_bitwise(store) -> None:
    document = make_document(5, [make_billboard_mesh([4, 0, 4])])
    blob = document.meshes[0].geometry

    remove_unused_materials(document, store)

    assert [m.name for m in document.materials] == ["mat0", "mat4"]
    assert billboard_material_ids(blob) == [1, 0, 1]
    # the slot holds integer bits: as a float the value is a tiny denormal, not 1.0
    assert float(np.abs(blob.vertices[:, 3]).max()) < 1e-30


def test_mixed_encodings_share_one_remap(store) -> None:
    document = make_document(
        4,
        [make_triangle_mesh([3]), make_billboard_mesh([1, 3])],
    )
    remove_unused_materials(document, store)
    assert [m.name for m in document.materials] == ["mat1", "mat3"]
    assert _shape_ids(document) == [1]
    assert billboard_material_ids(document.meshes[1].geometry) == [0, 1]


def test_out_of_range_reference_leaves_document_untouched(store) -> None:
    document = make_document(
        3,
        [make_triangle_mesh([0]), make_billboard_mesh([7])],
    )
    with pytest.raises(ValidationError, match="mesh 1"):
        remove_unused_materials(document, store)
    assert len(document.materials) == 3
    assert _shape_ids(document) == [0]
    assert billboard_material_ids(document.meshes[1].geometry) == [7]


def test_offset_materials_shifts_both_encodings(store) -> None:
    document = make_document(
        6,
        [make_triangle_mesh([0, 1]), make_billboard_mesh([2, 0])],
    )
    offset_materials(document, 3, store)
    assert _shape_ids(document) == [3, 4]
    assert billboard_material_ids(document.meshes[1].geometry) == [5, 3]


def test_offset_zero_is_noop(store) -> None:
    document = make_document(2, [make_triangle_mesh([1])])
    offset_materials(document, 0, store)
    assert _shape_ids(document) == [1]


def test_negative_offset_below_zero_fails_without_changes(store) -> None:
    document = make_document(
        4,
        [make_triangle_mesh([3]), make_billboard_mesh([0, 2])],
    )
    with pytest.raises(ValidationError):
        offset_materials(document, -1, store)
    assert _shape_ids(document) == [3]
    assert billboard_material_ids(document.meshes[1].geometry) == [0, 2]


def test_concatenate_documents_appends_palette(store) -> None:
    base = make_document(2, [make_triangle_mesh([1])])
    other = make_document(3, [make_billboard_mesh([0, 2])])
    other.lights.append(DirectionalLight(direction=(0.0, -1.0, 0.0)))

    merged = concatenate_documents(base, other, store)

    assert merged is base
    assert [m.name for m in merged.materials] == ["mat0", "mat1", "mat0", "mat1", "mat2"]
    assert len(merged.meshes) == 2
    assert len(merged.lights) == 1
    assert billboard_material_ids(merged.meshes[1].geometry) == [2, 4]
    assert material_census(merged, store).tolist() == [False, True, True, False, True]


def test_offset_handles_large_billboard_ids_without_lookup_table(store) -> None:
    document = make_document(1, [make_billboard_mesh([4_000_000_000, 7])])
    offset_materials(document, 5, store)
    assert billboard_material_ids(document.meshes[0].geometry) == [4_000_000_005, 12]


def test_census_rejects_negative_shape_material(store) -> None:
    document = make_document(3, [make_triangle_mesh([1, -1])])
    with pytest.raises(ValidationError, match="negative"):
        material_census(document, store)
    with pytest.raises(ValidationError):
        remove_unused_materials(document, store)
    assert _shape_ids(document) == [1, -1]
