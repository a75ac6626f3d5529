from __future__ import annotations

"""Material census, compaction and offsetting across both mesh encodings.

Triangle meshes carry one material id per shape. Billboard meshes carry one per
vertex in a float32 attribute slot holding the raw bits of a uint32, so every
read and write here goes through a bit reinterpretation, never a numeric cast.

All rewrites are computed first and committed afterwards; a failing check leaves
the document untouched.
"""

import logging
from dataclasses import replace
from typing import Callable

import numpy as np

from .colors import bits_from_floats
from .errors import ValidationError
from .geometry import BillboardGeometry, GeometryStore, TriangleGeometry, create_geometry_store
from .model import SceneDocument

logger = logging.getLogger("hrsf.dedup")


def _material_references(document: SceneDocument, store: GeometryStore) -> list[np.ndarray]:
    """Every material index of every mesh, one int64 array per mesh."""
    references: list[np.ndarray] = []
    for mesh in document.meshes:
        blob = mesh.geometry
        if isinstance(blob, TriangleGeometry):
            ids = [shape.material_id for shape in store.get_shapes(blob)]
            references.append(np.asarray(ids, dtype=np.int64))
        elif isinstance(blob, BillboardGeometry):
            bits = bits_from_floats(store.get_material_attribute_buffer(blob))
            references.append(bits.astype(np.int64))
        else:
            raise TypeError(f"unsupported geometry blob {type(blob).__name__}")
    return references


def material_census(document: SceneDocument, store: GeometryStore | None = None) -> np.ndarray:
    """Boolean array marking which materials are referenced by any mesh."""
    store = store or create_geometry_store()
    material_count = len(document.materials)
    used = np.zeros(material_count, dtype=bool)
    for mesh_index, ids in enumerate(_material_references(document, store)):
        if ids.size == 0:
            continue
        lowest = int(ids.min())
        if lowest < 0:
            raise ValidationError(f"mesh {mesh_index} references negative material {lowest}")
        highest = int(ids.max())
        if highest >= material_count:
            raise ValidationError(
                f"mesh {mesh_index} references material {highest} "
                f"but only {material_count} materials exist"
            )
        used[ids] = True
    return used


def _rewrite_plan(
    document: SceneDocument,
    store: GeometryStore,
    remap: Callable[[np.ndarray], np.ndarray],
) -> list[tuple[object, object]]:
    """Build replacement shape lists / material slots without touching the document."""
    plan: list[tuple[object, object]] = []
    for mesh in document.meshes:
        blob = mesh.geometry
        if isinstance(blob, TriangleGeometry):
            shapes = store.get_shapes(blob)
            new_ids = remap(np.asarray([shape.material_id for shape in shapes], dtype=np.int64))
            rewritten = [
                replace(shape, material_id=int(new_id)) for shape, new_id in zip(shapes, new_ids)
            ]
            plan.append((shapes, rewritten))
        else:
            bits = bits_from_floats(store.get_material_attribute_buffer(blob))
            new_bits = remap(bits.astype(np.int64)).astype(np.uint32)
            plan.append((bits, new_bits))
    return plan


def _commit(plan: list[tuple[object, object]]) -> None:
    for target, value in plan:
        # slice assignment writes through the store's live list / uint32 view
        target[:] = value  # type: ignore[index]


def remove_unused_materials(
    document: SceneDocument,
    store: GeometryStore | None = None,
) -> np.ndarray | None:
    """Drop materials no mesh references and renumber the remaining ones.

    Returns the old-to-new lookup table, or ``None`` when every material is in
    use and nothing changed. Unused entries of the table are ``-1``.
    """
    store = store or create_geometry_store()
    used = material_census(document, store)
    if bool(np.all(used)):
        logger.debug("All materials in use; nothing to remove")
        return None

    table = np.full(len(used), -1, dtype=np.int64)
    table[used] = np.arange(int(np.count_nonzero(used)), dtype=np.int64)

    plan = _rewrite_plan(document, store, lambda ids: table[ids])
    materials = [material for material, keep in zip(document.materials, used) if keep]

    _commit(plan)
    document.materials = materials
    logger.info(
        f"Removed {len(used) - len(materials)} unused materials, {len(materials)} remain"
    )
    return table


def offset_materials(
    document: SceneDocument,
    delta: int,
    store: GeometryStore | None = None,
) -> None:
    """Shift every material reference by ``delta``."""
    if delta == 0:
        return
    store = store or create_geometry_store()
    references = _material_references(document, store)
    for mesh_index, ids in enumerate(references):
        if ids.size and int(ids.min()) + delta < 0:
            raise ValidationError(
                f"offset {delta} moves material {int(ids.min())} of mesh {mesh_index} below zero"
            )
        if ids.size and int(ids.max()) + delta > np.iinfo(np.uint32).max:
            raise ValidationError(f"offset {delta} overflows material ids of mesh {mesh_index}")

    _commit(_rewrite_plan(document, store, lambda ids: ids + delta))
    logger.debug(f"Offset material references of {len(document.meshes)} meshes by {delta}")


def concatenate_documents(
    base: SceneDocument,
    other: SceneDocument,
    store: GeometryStore | None = None,
) -> SceneDocument:
    """Append the meshes, lights and materials of ``other`` to ``base``.

    The appended meshes are renumbered to point past ``base``'s palette. Camera
    and environment stay those of ``base``. ``other`` is modified in place.
    """
    store = store or create_geometry_store()
    offset_materials(other, len(base.materials), store)
    base.materials.extend(other.materials)
    base.lights.extend(other.lights)
    base.meshes.extend(other.meshes)
    return base
