from __future__ import annotations

"""Load and save scene documents and their components on disk.

A saved scene is laid out as

  <stem>.json                    scene root (version, meshes, components)
  <stem>_<type>[...].<ext>       one geometry blob per mesh
  <stem>_material.json           only in multi-file mode
  <stem>_light.json              only in multi-file mode
  <stem>_camera.json             only in multi-file mode
  <stem>_env.json                only in multi-file mode

Writes go straight to the target paths; callers needing crash atomicity should
save into a temporary directory and rename.
"""

import logging
from pathlib import Path
from typing import Sequence

from . import codec
from .animation import PathEvaluator
from .assets import DOCUMENT_SUFFIX, AssetPathResolver, document_path, read_document, write_document
from .config import SceneFormatConfig
from .colors import bits_from_floats
from .geometry import (
    BillboardGeometry,
    GeometryStore,
    TriangleGeometry,
    attribute_offset,
    create_geometry_store,
)
from .model import Environment, Light, Material, MaterialFlags, PinholeCamera, SceneDocument
from .verify import verify

logger = logging.getLogger("hrsf.scene_io")

COMPONENT_SUFFIXES = {
    "materials": "_material",
    "lights": "_light",
    "camera": "_camera",
    "environment": "_env",
}


def _store_for(store: GeometryStore | None, config: SceneFormatConfig) -> GeometryStore:
    return store or create_geometry_store(config.geometry_backend)


def _uses_transparent_material(geometry: object, materials: Sequence[Material]) -> bool:
    if isinstance(geometry, TriangleGeometry):
        ids = {shape.material_id for shape in geometry.shapes}
    elif isinstance(geometry, BillboardGeometry):
        column = attribute_offset(geometry.attributes, "material")
        ids = {int(bits) for bits in bits_from_floats(geometry.vertices[:, column])}
    else:
        return False
    return any(
        index < len(materials) and materials[index].data.has_flag(MaterialFlags.TRANSPARENT)
        for index in ids
    )


def geometry_file_names(document: SceneDocument, stem: str, extension: str) -> list[str]:
    """Distinct blob file names for every mesh of ``document``."""
    names: list[str] = []
    taken: set[str] = set()
    for mesh in document.meshes:
        base = f"{stem}_{mesh.mesh_type.value.lower()}"
        if mesh.is_moving():
            base += "_moving"
        if _uses_transparent_material(mesh.geometry, document.materials):
            base += "_transparent"

        candidate = base
        counter = 1
        while candidate in taken:
            candidate = f"{base}_{counter}"
            counter += 1
        taken.add(candidate)
        names.append(candidate + extension)
    return names


def save_scene(
    document: SceneDocument,
    filename: str | Path,
    *,
    single_file: bool | None = None,
    store: GeometryStore | None = None,
    config: SceneFormatConfig | None = None,
) -> Path:
    """Write ``document`` as ``<filename>.json`` plus its geometry blobs.

    Returns the path of the scene root document.
    """
    config = config or SceneFormatConfig.from_env()
    store = _store_for(store, config)
    if single_file is None:
        single_file = config.single_file
    if config.verify_on_save:
        verify(document, store)

    root_path = document_path(Path(filename).absolute())
    directory = root_path.parent
    directory.mkdir(parents=True, exist_ok=True)
    stem = root_path.stem
    resolver = AssetPathResolver(directory)

    mesh_names = geometry_file_names(document, stem, store.extension)
    for mesh, name in zip(document.meshes, mesh_names):
        store.save(mesh.geometry, directory / name)

    tree = codec.encode_scene(document, mesh_names, resolver)
    if not single_file:
        # components first, then the root that points at them
        for field, suffix in COMPONENT_SUFFIXES.items():
            # stem may contain dots, so the suffix is appended rather than swapped
            component_path = write_document(
                tree[field], directory / f"{stem}{suffix}{DOCUMENT_SUFFIX}", indent=config.json_indent
            )
            tree[field] = component_path.name

    write_document(tree, root_path, indent=config.json_indent)
    logger.info(
        f"Saved scene {root_path} ({len(document.meshes)} meshes, "
        f"{len(document.materials)} materials, {'single' if single_file else 'multi'}-file)"
    )
    return root_path


def load_scene(
    filename: str | Path,
    *,
    store: GeometryStore | None = None,
    config: SceneFormatConfig | None = None,
    verify_document: bool = True,
) -> SceneDocument:
    """Load a scene root document and everything it references."""
    config = config or SceneFormatConfig.from_env()
    store = _store_for(store, config)
    path = document_path(Path(filename).absolute())
    tree = read_document(path)
    document = codec.decode_scene(tree, AssetPathResolver(path.parent), store, path)
    if verify_document:
        verify(document, store)
    logger.info(
        f"Loaded scene {path} ({len(document.meshes)} meshes, "
        f"{len(document.materials)} materials, {len(document.lights)} lights)"
    )
    return document


# =========================================================================
# Component files
# =========================================================================

def _component_source(filename: str | Path) -> tuple[Path, AssetPathResolver]:
    path = document_path(Path(filename).absolute())
    return path, AssetPathResolver(path.parent)


def load_camera(filename: str | Path) -> PinholeCamera:
    path, resolver = _component_source(filename)
    return codec.decode_camera(read_document(path), resolver, path)


def load_lights(filename: str | Path) -> list[Light]:
    path, resolver = _component_source(filename)
    return codec.decode_lights(read_document(path), resolver, path)


def load_materials(filename: str | Path) -> list[Material]:
    path, resolver = _component_source(filename)
    return codec.decode_materials(read_document(path), resolver, path)


def load_environment(filename: str | Path) -> Environment:
    path, resolver = _component_source(filename)
    return codec.decode_environment(read_document(path), resolver, path)


def load_path(filename: str | Path) -> PathEvaluator:
    path, resolver = _component_source(filename)
    return codec.decode_path(read_document(path), resolver, path)


def save_camera(filename: str | Path, camera: PinholeCamera, *, indent: int = 3) -> Path:
    return write_document(codec.encode_camera(camera), filename, indent=indent)


def save_lights(filename: str | Path, lights: Sequence[Light], *, indent: int = 3) -> Path:
    return write_document(codec.encode_lights(lights), filename, indent=indent)


def save_materials(filename: str | Path, materials: Sequence[Material], *, indent: int = 3) -> Path:
    path, resolver = _component_source(filename)
    return write_document(codec.encode_materials(materials, resolver), path, indent=indent)


def save_environment(filename: str | Path, environment: Environment, *, indent: int = 3) -> Path:
    path, resolver = _component_source(filename)
    return write_document(codec.encode_environment(environment, resolver), path, indent=indent)


def save_path(filename: str | Path, path: PathEvaluator, *, indent: int = 3) -> Path:
    return write_document(codec.encode_path(path), filename, indent=indent)
