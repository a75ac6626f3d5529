from __future__ import annotations

import json
from dataclasses import replace

import pytest

from conftest import make_billboard_mesh, make_document, make_triangle_mesh
from hrsf.animation import PathEvaluator, PathSection
from hrsf.codec import SCHEMA_VERSION
from hrsf.config import SceneFormatConfig
from hrsf.errors import FormatError, SceneIOError, ValidationError, VersionError
from hrsf.model import (
    DirectionalLight,
    Material,
    MaterialData,
    MaterialFlags,
    MaterialTextures,
    PinholeCamera,
    PointLight,
)
from hrsf.scene_io import (
    geometry_file_names,
    load_camera,
    load_materials,
    load_path,
    load_scene,
    save_camera,
    save_materials,
    save_path,
    save_scene,
)


def _orbit() -> PathEvaluator:
    return PathEvaluator(
        [
            PathSection(1.0, (1.0, 0.0, 0.0)),
            PathSection(1.0, (0.0, 0.0, 1.0)),
            PathSection(1.0, (0.0, 0.0, 0.0)),
        ],
        scale=2.0,
    )


def _scene():
    document = make_document(
        2,
        [make_triangle_mesh([0]), make_triangle_mesh([1]), make_billboard_mesh([0, 1])],
    )
    document.materials[1] = Material(
        name="mat1",
        data=MaterialData(albedo=(0.2, 0.4, 0.6), roughness=0.3, flags=MaterialFlags.TRANSPARENT),
    )
    document.meshes[1].position = _orbit()
    document.lights = [
        PointLight(position=(0.0, 10.0, 0.0), radius=0.25, path=_orbit()),
        DirectionalLight(direction=(0.0, -1.0, 0.0)),
    ]
    document.camera = PinholeCamera(position=(0.0, 1.0, -5.0), fov=1.2, speed=3.0)
    return document


def _assert_same_scene(loaded, original) -> None:
    assert loaded.meshes == original.meshes
    assert loaded.lights == original.lights
    assert loaded.camera == original.camera
    assert loaded.environment == original.environment
    assert [m.name for m in loaded.materials] == [m.name for m in original.materials]
    for got, want in zip(loaded.materials, original.materials):
        assert got.data.flags == want.data.flags
        assert got.data.roughness == want.data.roughness
        assert got.data.albedo == pytest.approx(want.data.albedo, abs=1e-9)


class TestRoundTrip:
    def test_single_file(self, tmp_path, store) -> None:
        document = _scene()
        root = save_scene(document, tmp_path / "scene", single_file=True, store=store, config=SceneFormatConfig())

        assert root == tmp_path / "scene.json"
        assert not (tmp_path / "scene_material.json").exists()
        tree = json.loads(root.read_text())
        assert tree["version"] == SCHEMA_VERSION
        assert isinstance(tree["materials"], list)

        _assert_same_scene(load_scene(root, store=store), document)

    def test_multi_file_writes_component_siblings(self, tmp_path, store) -> None:
        document = _scene()
        root = save_scene(document, tmp_path / "scene", single_file=False, store=store, config=SceneFormatConfig())

        tree = json.loads(root.read_text())
        assert tree["materials"] == "scene_material.json"
        assert tree["lights"] == "scene_light.json"
        assert tree["camera"] == "scene_camera.json"
        assert tree["environment"] == "scene_env.json"
        for name in tree.values():
            if isinstance(name, str):
                assert (tmp_path / name).exists()

        _assert_same_scene(load_scene(tmp_path / "scene.json", store=store), document)

    def test_single_file_setting_comes_from_config(self, tmp_path, store) -> None:
        save_scene(_scene(), tmp_path / "scene", store=store, config=SceneFormatConfig(single_file=False))
        assert (tmp_path / "scene_camera.json").exists()

    def test_json_indent_from_config(self, tmp_path, store) -> None:
        root = save_scene(_scene(), tmp_path / "scene", store=store, config=SceneFormatConfig(json_indent=2))
        assert root.read_text().startswith('{\n  "version"')

    def test_scene_in_nested_directory(self, tmp_path, store) -> None:
        root = save_scene(_scene(), tmp_path / "out" / "level" / "scene", store=store, config=SceneFormatConfig())
        tree = json.loads(root.read_text())
        assert tree["meshes"][0]["file"] == "scene_triangle.npz"
        assert (tmp_path / "out" / "level" / "scene_triangle.npz").exists()


class TestGeometryNames:
    def test_suffixes_follow_motion_and_transparency(self, store) -> None:
        names = geometry_file_names(_scene(), "scene", store.extension)
        assert names == [
            "scene_triangle.npz",
            "scene_triangle_moving_transparent.npz",
            "scene_billboard_transparent.npz",
        ]

    def test_collisions_get_counters(self, store) -> None:
        document = make_document(1, [make_triangle_mesh([0]) for _ in range(3)])
        names = geometry_file_names(document, "s", store.extension)
        assert names == ["s_triangle.npz", "s_triangle_1.npz", "s_triangle_2.npz"]


class TestLoadErrors:
    def test_old_version_names_the_file(self, tmp_path, store) -> None:
        (tmp_path / "old.json").write_text(json.dumps({"version": 1, "meshes": []}))
        with pytest.raises(VersionError, match="old.json") as info:
            load_scene(tmp_path / "old.json", store=store)
        assert info.value.found == 1

    def test_missing_file_is_an_io_error(self, tmp_path, store) -> None:
        with pytest.raises(SceneIOError) as info:
            load_scene(tmp_path / "nope.json", store=store)
        assert isinstance(info.value, OSError)

    def test_missing_geometry_blob(self, tmp_path, store) -> None:
        (tmp_path / "scene.json").write_text(
            json.dumps({"version": SCHEMA_VERSION, "meshes": [{"file": "gone.npz"}]})
        )
        with pytest.raises(SceneIOError, match="gone.npz"):
            load_scene(tmp_path / "scene.json", store=store)

    def test_invalid_json(self, tmp_path, store) -> None:
        (tmp_path / "broken.json").write_text("{ not json")
        with pytest.raises(FormatError, match="broken.json"):
            load_scene(tmp_path / "broken.json", store=store)

    def test_declared_type_must_match_blob(self, tmp_path, store) -> None:
        store.save(make_triangle_mesh([0]), tmp_path / "m.npz")
        (tmp_path / "scene.json").write_text(
            json.dumps(
                {
                    "version": SCHEMA_VERSION,
                    "meshes": [{"file": "m.npz", "type": "Billboard"}],
                    "materials": [{"name": "a"}],
                }
            )
        )
        with pytest.raises(FormatError, match="Billboard"):
            load_scene(tmp_path / "scene.json", store=store)

    def test_legacy_scene_key_and_bare_string(self, tmp_path, store) -> None:
        store.save(make_triangle_mesh([0]), tmp_path / "m.npz")
        (tmp_path / "scene.json").write_text(
            json.dumps({"version": SCHEMA_VERSION, "scene": "m.npz", "materials": [{"name": "a"}]})
        )
        document = load_scene(tmp_path / "scene.json", store=store)
        assert len(document.meshes) == 1
        assert document.meshes[0].geometry == make_triangle_mesh([0])


class TestVerification:
    def test_save_refuses_invalid_document_before_writing(self, tmp_path, store) -> None:
        document = make_document(1, [make_triangle_mesh([4])])
        with pytest.raises(ValidationError):
            save_scene(document, tmp_path / "scene", store=store, config=SceneFormatConfig())
        assert list(tmp_path.iterdir()) == []

    def test_load_verifies_unless_disabled(self, tmp_path, store) -> None:
        document = make_document(1, [make_triangle_mesh([4])])
        save_scene(document, tmp_path / "scene", store=store, config=SceneFormatConfig(verify_on_save=False))

        with pytest.raises(ValidationError):
            load_scene(tmp_path / "scene.json", store=store)
        loaded = load_scene(tmp_path / "scene.json", store=store, verify_document=False)
        assert loaded.meshes[0].geometry.shapes[0].material_id == 4


class TestComponentFiles:
    def test_camera(self, tmp_path) -> None:
        camera = PinholeCamera(direction=(1.0, 0.0, 0.0), look_at_path=_orbit())
        path = save_camera(tmp_path / "cam", camera)
        assert path.name == "cam.json"
        assert load_camera(tmp_path / "cam") == camera

    def test_materials_keep_texture_references_relative(self, tmp_path) -> None:
        texture = tmp_path / "textures" / "brick.png"
        materials = [Material(name="brick", textures=MaterialTextures(albedo=str(texture)))]
        path = save_materials(tmp_path / "palette.json", materials)

        assert json.loads(path.read_text()) == [{"name": "brick", "albedoTex": "textures/brick.png"}]
        assert load_materials(path) == materials

    def test_path(self, tmp_path) -> None:
        path = _orbit()
        save_path(tmp_path / "orbit", path, indent=1)
        loaded = load_path(tmp_path / "orbit.json")
        assert loaded == path
        assert loaded.is_closed()

    def test_scene_may_reference_hand_written_component(self, tmp_path, store) -> None:
        save_camera(tmp_path / "shared_cam", PinholeCamera(fov=0.9))
        store.save(make_triangle_mesh([0]), tmp_path / "m.npz")
        (tmp_path / "scene.json").write_text(
            json.dumps(
                {
                    "version": SCHEMA_VERSION,
                    "meshes": [{"file": "m.npz", "type": "Triangle"}],
                    "materials": [{"name": "a"}],
                    "camera": "shared_cam.json",
                }
            )
        )
        document = load_scene(tmp_path / "scene.json", store=store)
        assert document.camera == replace(PinholeCamera(), fov=0.9)


def test_multi_file_save_with_dotted_stem(tmp_path, store) -> None:
    document = _scene()
    root = save_scene(document, tmp_path / "level.1.json", single_file=False, store=store, config=SceneFormatConfig())

    assert root == tmp_path / "level.1.json"
    tree = json.loads(root.read_text())
    assert tree["materials"] == "level.1_material.json"
    assert tree["lights"] == "level.1_light.json"
    assert tree["camera"] == "level.1_camera.json"
    assert tree["environment"] == "level.1_env.json"
    assert not (tmp_path / "level.json").exists()

    _assert_same_scene(load_scene(root, store=store), document)
