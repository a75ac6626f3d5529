"""hrsf -- human-readable scene format.

Core modules:
  - animation:  PathEvaluator keyframe splines (open / closed loops, look-at targets)
  - model:      SceneDocument, materials, lights, camera, environment, mesh references
  - geometry:   geometry blob store interface and the numpy ``.npz`` backend
  - dedup:      material census, unused-material removal, material id offsetting
  - codec:      versioned JSON tree encoding with default elision and sRGB colors
  - scene_io:   single-file / multi-file load and save
  - verify:     referential integrity checks
"""

from .animation import PathEvaluator, PathSection
from .assets import AssetPathResolver, read_document, write_document
from .codec import SCHEMA_VERSION, decode_scene, encode_scene
from .config import SceneFormatConfig
from .dedup import concatenate_documents, material_census, offset_materials, remove_unused_materials
from .errors import FormatError, SceneFormatError, SceneIOError, ValidationError, VersionError
from .geometry import (
    BillboardGeometry,
    GeometryStore,
    MeshType,
    NumpyGeometryStore,
    Shape,
    TriangleGeometry,
    create_geometry_store,
)
from .model import (
    DEFAULT_CAMERA,
    DEFAULT_ENVIRONMENT,
    DEFAULT_MATERIAL_DATA,
    DirectionalLight,
    Environment,
    Material,
    MaterialData,
    MaterialFlags,
    MaterialTextures,
    MeshReference,
    PinholeCamera,
    PointLight,
    SceneDocument,
    pack_material_data,
)
from .scene_io import (
    load_camera,
    load_environment,
    load_lights,
    load_materials,
    load_path,
    load_scene,
    save_camera,
    save_environment,
    save_lights,
    save_materials,
    save_path,
    save_scene,
)
from .verify import verify

__version__ = "0.4.0"

__all__ = [
    "AssetPathResolver",
    "BillboardGeometry",
    "DEFAULT_CAMERA",
    "DEFAULT_ENVIRONMENT",
    "DEFAULT_MATERIAL_DATA",
    "DirectionalLight",
    "Environment",
    "FormatError",
    "GeometryStore",
    "Material",
    "MaterialData",
    "MaterialFlags",
    "MaterialTextures",
    "MeshReference",
    "MeshType",
    "NumpyGeometryStore",
    "PathEvaluator",
    "PathSection",
    "PinholeCamera",
    "PointLight",
    "SCHEMA_VERSION",
    "SceneDocument",
    "SceneFormatConfig",
    "SceneFormatError",
    "SceneIOError",
    "Shape",
    "TriangleGeometry",
    "ValidationError",
    "VersionError",
    "concatenate_documents",
    "create_geometry_store",
    "decode_scene",
    "encode_scene",
    "load_camera",
    "load_environment",
    "load_lights",
    "load_materials",
    "load_path",
    "load_scene",
    "material_census",
    "offset_materials",
    "pack_material_data",
    "read_document",
    "remove_unused_materials",
    "save_camera",
    "save_environment",
    "save_lights",
    "save_materials",
    "save_path",
    "save_scene",
    "verify",
    "write_document",
]
