from __future__ import annotations

"""Referential integrity checks run before save and after load."""

from .animation import PathEvaluator
from .dedup import material_census
from .errors import ValidationError
from .geometry import GeometryStore, create_geometry_store
from .model import SceneDocument


def verify(document: SceneDocument, store: GeometryStore | None = None) -> None:
    """Raise ValidationError on the first violated invariant.

    Order: geometry structure (when a store is given), material index bounds,
    then every attached path.
    """
    if store is not None:
        for index, mesh in enumerate(document.meshes):
            try:
                store.verify(mesh.geometry)
            except ValidationError as exc:
                raise ValidationError(f"mesh {index}: {exc}") from exc

    material_census(document, store or create_geometry_store())

    for index, light in enumerate(document.lights):
        _validate_path(light.path, f"light {index} path")
    _validate_path(document.camera.position_path, "camera position path")
    _validate_path(document.camera.look_at_path, "camera look-at path")
    for index, mesh in enumerate(document.meshes):
        _validate_path(mesh.position, f"mesh {index} position path")
        _validate_path(mesh.look_at, f"mesh {index} look-at path")


def _validate_path(path: PathEvaluator, where: str) -> None:
    try:
        path.validate()
    except ValidationError as exc:
        raise ValidationError(f"{where}: {exc}") from exc
