from __future__ import annotations

import json

from conftest import make_billboard_mesh, make_document, make_triangle_mesh
from hrsf.__main__ import main
from hrsf.config import SceneFormatConfig
from hrsf.scene_io import load_scene, save_scene


def _write_scene(tmp_path, store):
    document = make_document(4, [make_triangle_mesh([3]), make_billboard_mesh([1, 3])])
    return save_scene(document, tmp_path / "scene", store=store, config=SceneFormatConfig())


def test_info(tmp_path, store, capsys) -> None:
    root = _write_scene(tmp_path, store)
    assert main(["info", str(root)]) == 0
    out = capsys.readouterr().out
    assert "meshes=2" in out
    assert "materials=4 used=2" in out


def test_verify_reports_errors(tmp_path, store, capsys) -> None:
    root = _write_scene(tmp_path, store)
    assert main(["verify", str(root)]) == 0

    tree = json.loads(root.read_text())
    tree["version"] = 3
    root.write_text(json.dumps(tree))
    assert main(["verify", str(root)]) == 1
    assert "invalid version" in capsys.readouterr().err


def test_compact_writes_smaller_palette(tmp_path, store) -> None:
    root = _write_scene(tmp_path, store)
    assert main(["compact", str(root), "-o", str(tmp_path / "compact")]) == 0

    compacted = load_scene(tmp_path / "compact.json", store=store)
    assert [m.name for m in compacted.materials] == ["mat1", "mat3"]
    assert compacted.meshes[0].geometry.shapes[0].material_id == 1


def test_split_to_multi_file(tmp_path, store) -> None:
    root = _write_scene(tmp_path, store)
    assert main(["split", str(root), "-o", str(tmp_path / "split" / "scene")]) == 0
    assert (tmp_path / "split" / "scene_material.json").exists()

    assert main(["split", str(tmp_path / "split" / "scene.json"), "--single-file"]) == 0
    tree = json.loads((tmp_path / "split" / "scene.json").read_text())
    assert isinstance(tree["materials"], list)
