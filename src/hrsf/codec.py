from __future__ import annotations

"""Versioned JSON tree codec for scene documents.

Encoding rules shared by every component:

  - a field equal to its type's default is omitted; an absent field decodes to it
  - a vec3 with three equal components is written as one scalar; a scalar, a
    1-element or a 3-element list is accepted back
  - colors are sRGB on the wire and linear in memory
  - materials, lights, camera, environment and every path may be given inline or
    as a string naming a sibling ``.json`` file with the same schema
  - texture references are written relative to the document directory and read
    back as absolute paths
"""

import logging
import numbers
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence, TypeVar

from .animation import PathEvaluator, PathSection
from .assets import AssetPathResolver, read_document
from .colors import ONE3, Vec3, from_srgb3, to_srgb3
from .errors import FormatError, VersionError
from .geometry import GeometryBlob, GeometryStore, MeshType
from .model import (
    DEFAULT_CAMERA,
    DEFAULT_ENVIRONMENT,
    DEFAULT_MATERIAL_DATA,
    MATERIAL_FLAG_NAMES,
    DirectionalLight,
    Environment,
    Light,
    Material,
    MaterialData,
    MaterialFlags,
    MaterialTextures,
    MeshReference,
    PinholeCamera,
    PointLight,
    SceneDocument,
)

logger = logging.getLogger("hrsf.codec")

SCHEMA_VERSION = 4

LIGHT_TYPES = ("Point", "Directional")
CAMERA_TYPES = ("Pinhole",)
TEXTURE_FIELDS = ("albedo", "specular", "coverage", "occlusion")

T = TypeVar("T")


# =========================================================================
# Primitive helpers
# =========================================================================

def encode_vec3(vec: Sequence[float]) -> float | list[float]:
    if vec[0] == vec[1] == vec[2]:
        return float(vec[0])
    return [float(vec[0]), float(vec[1]), float(vec[2])]


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def decode_vec3(value: Any, field: str, source: Path | None = None) -> Vec3:
    if _is_number(value):
        scalar = float(value)
        return (scalar, scalar, scalar)
    if isinstance(value, list):
        if not all(_is_number(item) for item in value):
            raise FormatError(f"'{field}' must contain numbers", field=field, filename=source)
        if len(value) == 1:
            scalar = float(value[0])
            return (scalar, scalar, scalar)
        if len(value) == 3:
            return (float(value[0]), float(value[1]), float(value[2]))
        raise FormatError(
            f"'{field}' expected array with 3 or 1 element but got {len(value)}",
            field=field,
            filename=source,
        )
    raise FormatError(f"'{field}' must be a number or an array", field=field, filename=source)


def _require(tree: Mapping[str, Any], field: str, source: Path | None) -> Any:
    if field not in tree:
        raise FormatError(f"missing field '{field}'", field=field, filename=source)
    return tree[field]


def _expect_object(value: Any, what: str, source: Path | None) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise FormatError(f"{what} must be an object", field=what, filename=source)
    return value


def _number(tree: Mapping[str, Any], field: str, default: float | None, source: Path | None) -> float:
    if field not in tree:
        if default is None:
            raise FormatError(f"missing field '{field}'", field=field, filename=source)
        return default
    value = tree[field]
    if not _is_number(value):
        raise FormatError(f"'{field}' must be a number", field=field, filename=source)
    return float(value)


def _vec3(tree: Mapping[str, Any], field: str, default: Vec3 | None, source: Path | None) -> Vec3:
    if field not in tree:
        if default is None:
            raise FormatError(f"missing field '{field}'", field=field, filename=source)
        return default
    return decode_vec3(tree[field], field, source)


def _color(tree: Mapping[str, Any], field: str, default: Vec3, source: Path | None) -> Vec3:
    if field not in tree:
        return default
    return from_srgb3(decode_vec3(tree[field], field, source))


def _put_color(tree: dict[str, Any], field: str, value: Vec3, default: Vec3) -> None:
    if value != default:
        tree[field] = encode_vec3(to_srgb3(value))


def _put_vec3(tree: dict[str, Any], field: str, value: Vec3, default: Vec3) -> None:
    if value != default:
        tree[field] = encode_vec3(value)


def _put_number(tree: dict[str, Any], field: str, value: float, default: float) -> None:
    if value != default:
        tree[field] = float(value)


def _bool(tree: Mapping[str, Any], field: str, default: bool, source: Path | None) -> bool:
    if field not in tree:
        return default
    value = tree[field]
    if not isinstance(value, bool):
        raise FormatError(f"'{field}' must be a boolean", field=field, filename=source)
    return value


def _string(tree: Mapping[str, Any], field: str, source: Path | None) -> str:
    value = _require(tree, field, source)
    if not isinstance(value, str):
        raise FormatError(f"'{field}' must be a string", field=field, filename=source)
    return value


def _texture(
    tree: Mapping[str, Any],
    field: str,
    resolver: AssetPathResolver,
    source: Path | None,
) -> str | None:
    if field not in tree:
        return None
    return str(resolver.to_absolute(_string(tree, field, source)))


def _dereference(
    value: Any,
    resolver: AssetPathResolver,
    source: Path | None,
    decode: Callable[[Any, AssetPathResolver, Path | None], T],
) -> T:
    """Decode ``value`` inline, or load the file it names and decode that."""
    if isinstance(value, str):
        path = resolver.document(value)
        logger.debug(f"Following reference {value!r} to {path}")
        return decode(read_document(path), resolver.child(value), path)
    return decode(value, resolver, source)


# =========================================================================
# Paths
# =========================================================================

def encode_path(path: PathEvaluator) -> dict[str, Any]:
    tree: dict[str, Any] = {}
    _put_number(tree, "scale", path.scale, 1.0)
    tree["sections"] = [
        {"time": float(section.time), "pos": encode_vec3(section.position)}
        for section in path.sections
    ]
    return tree


def _decode_path_tree(tree: Any, resolver: AssetPathResolver, source: Path | None) -> PathEvaluator:
    tree = _expect_object(tree, "path", source)
    scale = _number(tree, "scale", 1.0, source)
    sections_tree = tree.get("sections", [])
    if not isinstance(sections_tree, list):
        raise FormatError("sections must be an array", field="sections", filename=source)
    sections = []
    for section in sections_tree:
        section = _expect_object(section, "section", source)
        sections.append(
            PathSection(
                time=_number(section, "time", None, source),
                position=_vec3(section, "pos", None, source),
            )
        )
    return PathEvaluator(sections, scale=scale)


def decode_path(value: Any, resolver: AssetPathResolver, source: Path | None = None) -> PathEvaluator:
    return _dereference(value, resolver, source, _decode_path_tree)


def _optional_path(
    tree: Mapping[str, Any],
    field: str,
    resolver: AssetPathResolver,
    source: Path | None,
) -> PathEvaluator:
    if field not in tree:
        return PathEvaluator()
    return decode_path(tree[field], resolver, source)


def _put_path(tree: dict[str, Any], field: str, path: PathEvaluator) -> None:
    if not path.is_static():
        tree[field] = encode_path(path)


# =========================================================================
# Materials
# =========================================================================

def encode_material(material: Material, resolver: AssetPathResolver) -> dict[str, Any]:
    default = DEFAULT_MATERIAL_DATA
    data = material.data
    tree: dict[str, Any] = {"name": material.name}

    for name in TEXTURE_FIELDS:
        texture = getattr(material.textures, name)
        if texture:
            tree[f"{name}Tex"] = resolver.to_relative(texture)

    _put_color(tree, "albedo", data.albedo, default.albedo)
    _put_number(tree, "roughness", data.roughness, default.roughness)
    _put_number(tree, "specular", data.specular, default.specular)
    _put_number(tree, "metalness", data.metalness, default.metalness)
    _put_number(tree, "translucency", data.translucency, default.translucency)
    _put_number(tree, "ior", data.ior, default.ior)
    _put_color(tree, "emission", data.emission, default.emission)

    for flag, wire_name in MATERIAL_FLAG_NAMES.items():
        value = data.has_flag(flag)
        if value != default.has_flag(flag):
            tree[wire_name] = value
    return tree


def decode_material(tree: Any, resolver: AssetPathResolver, source: Path | None = None) -> Material:
    tree = _expect_object(tree, "material", source)
    default = DEFAULT_MATERIAL_DATA

    flags = MaterialFlags.NONE
    for flag, wire_name in MATERIAL_FLAG_NAMES.items():
        if _bool(tree, wire_name, default.has_flag(flag), source):
            flags |= flag

    textures = MaterialTextures(
        **{name: _texture(tree, f"{name}Tex", resolver, source) for name in TEXTURE_FIELDS}
    )
    data = MaterialData(
        albedo=_color(tree, "albedo", default.albedo, source),
        roughness=_number(tree, "roughness", default.roughness, source),
        specular=_number(tree, "specular", default.specular, source),
        metalness=_number(tree, "metalness", default.metalness, source),
        translucency=_number(tree, "translucency", default.translucency, source),
        ior=_number(tree, "ior", default.ior, source),
        emission=_color(tree, "emission", default.emission, source),
        flags=flags,
    )
    return Material(name=_string(tree, "name", source), textures=textures, data=data)


def encode_materials(materials: Sequence[Material], resolver: AssetPathResolver) -> list[dict[str, Any]]:
    return [encode_material(material, resolver) for material in materials]


def _decode_materials_tree(tree: Any, resolver: AssetPathResolver, source: Path | None) -> list[Material]:
    if not isinstance(tree, list):
        raise FormatError("materials must be an array", field="materials", filename=source)
    return [decode_material(item, resolver, source) for item in tree]


def decode_materials(value: Any, resolver: AssetPathResolver, source: Path | None = None) -> list[Material]:
    return _dereference(value, resolver, source, _decode_materials_tree)


# =========================================================================
# Lights
# =========================================================================

def encode_light(light: Light) -> dict[str, Any]:
    tree: dict[str, Any]
    if isinstance(light, PointLight):
        tree = {"type": "Point", "position": encode_vec3(light.position)}
        _put_number(tree, "radius", light.radius, 0.0)
    elif isinstance(light, DirectionalLight):
        tree = {"type": "Directional", "direction": encode_vec3(light.direction)}
    else:
        raise FormatError(f"invalid light type {type(light).__name__}", field="type")
    _put_color(tree, "color", light.color, ONE3)
    _put_path(tree, "path", light.path)
    return tree


def decode_light(tree: Any, resolver: AssetPathResolver, source: Path | None = None) -> Light:
    tree = _expect_object(tree, "light", source)
    kind = _string(tree, "type", source)
    color = _color(tree, "color", ONE3, source)
    path = _optional_path(tree, "path", resolver, source)
    if kind == "Point":
        return PointLight(
            position=_vec3(tree, "position", None, source),
            radius=_number(tree, "radius", 0.0, source),
            color=color,
            path=path,
        )
    if kind == "Directional":
        return DirectionalLight(
            direction=_vec3(tree, "direction", None, source),
            color=color,
            path=path,
        )
    raise FormatError(
        f"invalid light type {kind!r}, expected one of {', '.join(LIGHT_TYPES)}",
        field="type",
        filename=source,
    )


def encode_lights(lights: Sequence[Light]) -> list[dict[str, Any]]:
    return [encode_light(light) for light in lights]


def _decode_lights_tree(tree: Any, resolver: AssetPathResolver, source: Path | None) -> list[Light]:
    if not isinstance(tree, list):
        raise FormatError("lights must be an array", field="lights", filename=source)
    return [decode_light(item, resolver, source) for item in tree]


def decode_lights(value: Any, resolver: AssetPathResolver, source: Path | None = None) -> list[Light]:
    return _dereference(value, resolver, source, _decode_lights_tree)


# =========================================================================
# Camera
# =========================================================================

def encode_camera(camera: PinholeCamera) -> dict[str, Any]:
    if not isinstance(camera, PinholeCamera):
        raise FormatError(f"invalid camera type {type(camera).__name__}", field="type")
    default = DEFAULT_CAMERA
    tree: dict[str, Any] = {"type": "Pinhole"}
    _put_vec3(tree, "position", camera.position, default.position)
    _put_vec3(tree, "direction", camera.direction, default.direction)
    _put_number(tree, "fov", camera.fov, default.fov)
    _put_number(tree, "near", camera.near, default.near)
    _put_number(tree, "far", camera.far, default.far)
    _put_vec3(tree, "up", camera.up, default.up)
    _put_number(tree, "speed", camera.speed, default.speed)
    _put_path(tree, "positionPath", camera.position_path)
    _put_path(tree, "lookAtPath", camera.look_at_path)
    return tree


def _decode_camera_tree(tree: Any, resolver: AssetPathResolver, source: Path | None) -> PinholeCamera:
    tree = _expect_object(tree, "camera", source)
    kind = _string(tree, "type", source)
    if kind not in CAMERA_TYPES:
        raise FormatError(f"unknown camera type {kind!r}", field="type", filename=source)
    default = DEFAULT_CAMERA
    return PinholeCamera(
        position=_vec3(tree, "position", default.position, source),
        direction=_vec3(tree, "direction", default.direction, source),
        fov=_number(tree, "fov", default.fov, source),
        near=_number(tree, "near", default.near, source),
        far=_number(tree, "far", default.far, source),
        up=_vec3(tree, "up", default.up, source),
        speed=_number(tree, "speed", default.speed, source),
        position_path=_optional_path(tree, "positionPath", resolver, source),
        look_at_path=_optional_path(tree, "lookAtPath", resolver, source),
    )


def decode_camera(value: Any, resolver: AssetPathResolver, source: Path | None = None) -> PinholeCamera:
    return _dereference(value, resolver, source, _decode_camera_tree)


# =========================================================================
# Environment
# =========================================================================

def encode_environment(environment: Environment, resolver: AssetPathResolver) -> dict[str, Any]:
    default = DEFAULT_ENVIRONMENT
    tree: dict[str, Any] = {}
    _put_color(tree, "color", environment.color, default.color)
    _put_color(tree, "ambientUp", environment.ambient_up, default.ambient_up)
    _put_color(tree, "ambientDown", environment.ambient_down, default.ambient_down)
    if environment.map:
        tree["map"] = resolver.to_relative(environment.map)
    if environment.ambient:
        tree["ambient"] = resolver.to_relative(environment.ambient)
    return tree


def _decode_environment_tree(tree: Any, resolver: AssetPathResolver, source: Path | None) -> Environment:
    tree = _expect_object(tree, "environment", source)
    default = DEFAULT_ENVIRONMENT
    return Environment(
        color=_color(tree, "color", default.color, source),
        ambient_up=_color(tree, "ambientUp", default.ambient_up, source),
        ambient_down=_color(tree, "ambientDown", default.ambient_down, source),
        map=_texture(tree, "map", resolver, source),
        ambient=_texture(tree, "ambient", resolver, source),
    )


def decode_environment(value: Any, resolver: AssetPathResolver, source: Path | None = None) -> Environment:
    return _dereference(value, resolver, source, _decode_environment_tree)


# =========================================================================
# Meshes and the scene root
# =========================================================================

def encode_mesh(mesh: MeshReference, reference: str) -> dict[str, Any]:
    tree: dict[str, Any] = {"file": reference, "type": mesh.mesh_type.value}
    _put_path(tree, "position", mesh.position)
    _put_path(tree, "lookAt", mesh.look_at)
    return tree


def _mesh_type(name: str, source: Path | None) -> MeshType:
    for mesh_type in MeshType:
        if mesh_type.value == name:
            return mesh_type
    raise FormatError(f"unknown mesh type {name!r}", field="type", filename=source)


def decode_mesh(
    value: Any,
    resolver: AssetPathResolver,
    store: GeometryStore,
    source: Path | None = None,
) -> MeshReference:
    if isinstance(value, str):
        value = {"file": value}
    tree = _expect_object(value, "mesh", source)
    declared = _mesh_type(_string(tree, "type", source), source) if "type" in tree else None

    blob: GeometryBlob = store.load(resolver.to_absolute(_string(tree, "file", source)))
    if declared is not None and blob.mesh_type is not declared:
        raise FormatError(
            f"mesh {tree['file']!r} declared as {declared.value} but holds {blob.mesh_type.value}",
            field="type",
            filename=source,
        )
    return MeshReference(
        geometry=blob,
        position=_optional_path(tree, "position", resolver, source),
        look_at=_optional_path(tree, "lookAt", resolver, source),
    )


def encode_scene(
    document: SceneDocument,
    mesh_references: Sequence[str],
    resolver: AssetPathResolver,
) -> dict[str, Any]:
    """Single-file scene tree; ``mesh_references`` name the saved geometry blobs."""
    if len(mesh_references) != len(document.meshes):
        raise ValueError("one geometry reference is required per mesh")
    return {
        "version": SCHEMA_VERSION,
        "meshes": [
            encode_mesh(mesh, reference)
            for mesh, reference in zip(document.meshes, mesh_references)
        ],
        "materials": encode_materials(document.materials, resolver),
        "lights": encode_lights(document.lights),
        "camera": encode_camera(document.camera),
        "environment": encode_environment(document.environment, resolver),
    }


def check_version(tree: Mapping[str, Any], source: Path | None) -> None:
    version = _require(tree, "version", source)
    if isinstance(version, bool) or version != SCHEMA_VERSION:
        raise VersionError(source, SCHEMA_VERSION, version)


def decode_scene(
    tree: Any,
    resolver: AssetPathResolver,
    store: GeometryStore,
    source: Path | None = None,
) -> SceneDocument:
    tree = _expect_object(tree, "scene", source)
    check_version(tree, source)

    if "meshes" in tree:
        entries = tree["meshes"]
    elif "scene" in tree:
        entries = tree["scene"]
    else:
        raise FormatError("missing field 'meshes'", field="meshes", filename=source)
    if isinstance(entries, (str, Mapping)):
        entries = [entries]
    if not isinstance(entries, list):
        raise FormatError("meshes must be an array", field="meshes", filename=source)

    return SceneDocument(
        meshes=[decode_mesh(entry, resolver, store, source) for entry in entries],
        camera=decode_camera(tree["camera"], resolver, source) if "camera" in tree else DEFAULT_CAMERA,
        lights=decode_lights(tree.get("lights", []), resolver, source),
        materials=decode_materials(tree.get("materials", []), resolver, source),
        environment=(
            decode_environment(tree["environment"], resolver, source)
            if "environment" in tree
            else DEFAULT_ENVIRONMENT
        ),
    )
