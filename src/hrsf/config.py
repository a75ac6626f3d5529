from __future__ import annotations

"""Runtime configuration read from the environment and an optional ``.env`` file."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class SceneFormatConfig:
    json_indent: int = 3
    single_file: bool = True
    geometry_backend: str = "numpy"
    verify_on_save: bool = True
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "SceneFormatConfig":
        """Build the config from ``HRSF_*`` variables.

        Variables already set in the process environment win over the ``.env`` file.
        """
        if dotenv_path is not None:
            load_dotenv(dotenv_path, override=False)
        else:
            load_dotenv(override=False)

        defaults = cls()
        return cls(
            json_indent=_env_int("HRSF_JSON_INDENT", defaults.json_indent),
            single_file=_env_bool("HRSF_SINGLE_FILE", defaults.single_file),
            geometry_backend=os.environ.get("HRSF_GEOMETRY_BACKEND", defaults.geometry_backend),
            verify_on_save=_env_bool("HRSF_VERIFY_ON_SAVE", defaults.verify_on_save),
            log_level=os.environ.get("HRSF_LOG_LEVEL", defaults.log_level).upper(),
        )
