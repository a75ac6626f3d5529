from __future__ import annotations

"""Error taxonomy shared by the codec, verifier and deduplicator."""

from pathlib import Path


class SceneFormatError(Exception):
    """Base class for every error raised by hrsf."""


class SceneIOError(SceneFormatError, OSError):
    """A document or geometry file could not be opened, read or written."""

    def __init__(self, message: str, filename: str | Path | None = None) -> None:
        super().__init__(message)
        self.filename = str(filename) if filename is not None else None

    def __str__(self) -> str:
        return self.args[0]


class FormatError(SceneFormatError, ValueError):
    """Malformed tree: missing field, wrong arity, unknown discriminant."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        filename: str | Path | None = None,
    ) -> None:
        self.field = field
        self.filename = str(filename) if filename is not None else None
        if self.filename:
            message = f"{self.filename}: {message}"
        super().__init__(message)


class VersionError(SceneFormatError):
    """Document schema version differs from the codec's version."""

    def __init__(self, filename: str | Path | None, expected: int, found: object) -> None:
        self.filename = str(filename) if filename is not None else "<memory>"
        self.expected = expected
        self.found = found
        super().__init__(
            f"{self.filename} invalid version: expected {expected}, found {found!r}"
        )


class ValidationError(SceneFormatError, ValueError):
    """Referential or temporal invariant violated."""
