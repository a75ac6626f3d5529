from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import SceneFormatConfig
from .dedup import material_census, remove_unused_materials
from .errors import SceneFormatError
from .geometry import create_geometry_store
from .scene_io import load_scene, save_scene


def _cmd_info(args: argparse.Namespace, config: SceneFormatConfig) -> int:
    store = create_geometry_store(config.geometry_backend)
    document = load_scene(args.scene, store=store, config=config, verify_document=False)
    used = material_census(document, store)
    print(f"meshes={len(document.meshes)}")
    for index, mesh in enumerate(document.meshes):
        moving = " moving" if mesh.is_moving() else ""
        print(f"  [{index}] {mesh.mesh_type.value} vertices={len(mesh.geometry.vertices)}{moving}")
    print(f"materials={len(document.materials)} used={int(used.sum())}")
    print(f"lights={len(document.lights)}")
    return 0


def _cmd_verify(args: argparse.Namespace, config: SceneFormatConfig) -> int:
    load_scene(args.scene, config=config, verify_document=True)
    print(f"OK {args.scene}")
    return 0


def _cmd_compact(args: argparse.Namespace, config: SceneFormatConfig) -> int:
    store = create_geometry_store(config.geometry_backend)
    document = load_scene(args.scene, store=store, config=config)
    before = len(document.materials)
    remove_unused_materials(document, store)
    output = save_scene(document, args.output or args.scene, store=store, config=config)
    print(f"{output}: {before} -> {len(document.materials)} materials")
    return 0


def _cmd_split(args: argparse.Namespace, config: SceneFormatConfig) -> int:
    store = create_geometry_store(config.geometry_backend)
    document = load_scene(args.scene, store=store, config=config)
    output = save_scene(
        document,
        args.output or args.scene,
        single_file=args.single_file,
        store=store,
        config=config,
    )
    print(f"Wrote {output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="hrsf", description="Inspect and rewrite hrsf scenes")
    parser.add_argument("--env-file", type=Path, default=None, help="Optional .env file to load")
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Print a scene summary")
    info.add_argument("scene", type=Path)
    info.set_defaults(func=_cmd_info)

    check = sub.add_parser("verify", help="Load and verify a scene")
    check.add_argument("scene", type=Path)
    check.set_defaults(func=_cmd_verify)

    compact = sub.add_parser("compact", help="Remove unused materials and save")
    compact.add_argument("scene", type=Path)
    compact.add_argument("-o", "--output", type=Path, default=None)
    compact.set_defaults(func=_cmd_compact)

    split = sub.add_parser("split", help="Re-save a scene in single-file or multi-file layout")
    split.add_argument("scene", type=Path)
    split.add_argument("-o", "--output", type=Path, default=None)
    split.add_argument("--single-file", action=argparse.BooleanOptionalAction, default=False)
    split.set_defaults(func=_cmd_split)

    args = parser.parse_args(argv)
    config = SceneFormatConfig.from_env(args.env_file)
    logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args, config)
    except SceneFormatError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
