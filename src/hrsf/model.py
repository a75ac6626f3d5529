from __future__ import annotations

"""In-memory scene document: camera, lights, materials, environment, mesh references.

All colors are linear. Materials are addressed by list position only; meshes
refer to them by integer index.
"""

import enum
from dataclasses import dataclass, field
from typing import Sequence, Union

import numpy as np

from .animation import PathEvaluator
from .colors import ONE3, ZERO3, Vec3, as_vec3
from .geometry import GeometryBlob, MeshType


class MaterialFlags(enum.IntFlag):
    NONE = 0
    TRANSPARENT = 1
    VOLUME = 2
    IGNORE_NORMALS = 4
    Y_ORIENTATION = 8
    TEXTURE_CLAMP = 16
    TEXTURE_SPHERICAL = 32


# wire name for every flag bit, in bit order
MATERIAL_FLAG_NAMES: dict[MaterialFlags, str] = {
    MaterialFlags.TRANSPARENT: "transparent",
    MaterialFlags.VOLUME: "volume",
    MaterialFlags.IGNORE_NORMALS: "ignoreNormals",
    MaterialFlags.Y_ORIENTATION: "yOrientation",
    MaterialFlags.TEXTURE_CLAMP: "textureClamp",
    MaterialFlags.TEXTURE_SPHERICAL: "textureSpherical",
}


@dataclass(frozen=True)
class MaterialTextures:
    albedo: str | None = None
    specular: str | None = None
    coverage: str | None = None
    occlusion: str | None = None


@dataclass(frozen=True)
class MaterialData:
    """Physically based material parameters."""

    albedo: Vec3 = ONE3
    roughness: float = 1.0
    specular: float = 1.0
    metalness: float = 0.0
    translucency: float = 0.0
    ior: float = 1.5
    emission: Vec3 = ZERO3
    flags: MaterialFlags = MaterialFlags.NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", as_vec3(self.albedo))
        object.__setattr__(self, "emission", as_vec3(self.emission))
        object.__setattr__(self, "flags", MaterialFlags(int(self.flags)))

    def has_flag(self, flag: MaterialFlags) -> bool:
        return bool(self.flags & flag)


DEFAULT_MATERIAL_DATA = MaterialData()

# float32 slots per material in the packed GPU layout
PACKED_MATERIAL_WIDTH = 16


@dataclass(frozen=True)
class Material:
    name: str
    textures: MaterialTextures = field(default_factory=MaterialTextures)
    data: MaterialData = DEFAULT_MATERIAL_DATA


@dataclass(frozen=True)
class PointLight:
    position: Vec3
    radius: float = 0.0
    color: Vec3 = ONE3
    path: PathEvaluator = field(default_factory=PathEvaluator)

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", as_vec3(self.position))
        object.__setattr__(self, "color", as_vec3(self.color))


@dataclass(frozen=True)
class DirectionalLight:
    direction: Vec3
    color: Vec3 = ONE3
    path: PathEvaluator = field(default_factory=PathEvaluator)

    def __post_init__(self) -> None:
        object.__setattr__(self, "direction", as_vec3(self.direction))
        object.__setattr__(self, "color", as_vec3(self.color))


Light = Union[PointLight, DirectionalLight]


@dataclass(frozen=True)
class PinholeCamera:
    position: Vec3 = ZERO3
    direction: Vec3 = (0.0, 0.0, 1.0)
    fov: float = 1.5708
    near: float = 0.01
    far: float = 100.0
    up: Vec3 = (0.0, 1.0, 0.0)
    speed: float = 1.0
    position_path: PathEvaluator = field(default_factory=PathEvaluator)
    look_at_path: PathEvaluator = field(default_factory=PathEvaluator)

    def __post_init__(self) -> None:
        for name in ("position", "direction", "up"):
            object.__setattr__(self, name, as_vec3(getattr(self, name)))


DEFAULT_CAMERA = PinholeCamera()


@dataclass(frozen=True)
class Environment:
    color: Vec3 = ONE3  # background color, or multiplier for the map
    ambient_up: Vec3 = ZERO3
    ambient_down: Vec3 = ZERO3
    map: str | None = None
    ambient: str | None = None

    def __post_init__(self) -> None:
        for name in ("color", "ambient_up", "ambient_down"):
            object.__setattr__(self, name, as_vec3(getattr(self, name)))


DEFAULT_ENVIRONMENT = Environment()


@dataclass(eq=False)
class MeshReference:
    """One geometry blob plus the rigid-body paths moving the whole object."""

    geometry: GeometryBlob
    position: PathEvaluator = field(default_factory=PathEvaluator)
    look_at: PathEvaluator = field(default_factory=PathEvaluator)

    @property
    def mesh_type(self) -> MeshType:
        return self.geometry.mesh_type

    def is_moving(self) -> bool:
        return not (self.position.is_static() and self.look_at.is_static())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MeshReference):
            return NotImplemented
        return (
            self.geometry == other.geometry
            and self.position == other.position
            and self.look_at == other.look_at
        )


@dataclass
class SceneDocument:
    meshes: list[MeshReference] = field(default_factory=list)
    camera: PinholeCamera = DEFAULT_CAMERA
    lights: list[Light] = field(default_factory=list)
    materials: list[Material] = field(default_factory=list)
    environment: Environment = DEFAULT_ENVIRONMENT

    def materials_data(self) -> list[MaterialData]:
        return [material.data for material in self.materials]


def pack_material_data(datas: Sequence[MaterialData]) -> np.ndarray:
    """Pack material records into a ``(N, 16)`` float32 array.

    Layout per row: albedo.rgb, roughness, emission.rgb, specular, metalness,
    translucency, ior, flags (uint32 bits), then padding.
    """
    packed = np.zeros((len(datas), PACKED_MATERIAL_WIDTH), dtype=np.float32)
    flag_bits = packed.view(np.uint32)
    for row, data in enumerate(datas):
        packed[row, 0:3] = data.albedo
        packed[row, 3] = data.roughness
        packed[row, 4:7] = data.emission
        packed[row, 7] = data.specular
        packed[row, 8] = data.metalness
        packed[row, 9] = data.translucency
        packed[row, 10] = data.ior
        flag_bits[row, 11] = int(data.flags)
    return packed
