from __future__ import annotations

"""Keyframe paths sampled with a Catmull-Rom derived cubic Bezier spline.

A path is a list of sections. Each section stores the time (seconds) needed to
travel from the previous keyframe to its own position. Position paths start at
an implicit origin anchor; a path whose last keyframe is the origin again is a
closed loop and wraps its neighbors, otherwise the ends are clamped which gives
flat tangents at both physical ends.

Look-at paths have no rest value, so they always wrap over the keyframes
themselves without the origin anchor.
"""

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .colors import Vec3, ZERO3, as_vec3
from .errors import ValidationError


@dataclass(frozen=True)
class PathSection:
    time: float
    position: Vec3

    def __post_init__(self) -> None:
        object.__setattr__(self, "time", float(self.time))
        object.__setattr__(self, "position", as_vec3(self.position))


def _bezier(
    left: np.ndarray,
    cp1: np.ndarray,
    cp2: np.ndarray,
    right: np.ndarray,
    u: float,
) -> np.ndarray:
    inv = 1.0 - u
    return (
        inv * inv * inv * left
        + 3.0 * inv * inv * u * cp1
        + 3.0 * inv * u * u * cp2
        + u * u * u * right
    )


def _catmull_rom_segment(
    pre_left: np.ndarray,
    left: np.ndarray,
    right: np.ndarray,
    post_right: np.ndarray,
    u: float,
) -> np.ndarray:
    cp1 = left + (right - pre_left) / 6.0
    cp2 = right + (left - post_right) / 6.0
    return _bezier(left, cp1, cp2, right, u)


class PathEvaluator:
    """Keyframe storage plus time based sampling for positions and look-at targets.

    The evaluator carries one mutable cursor driven by :meth:`advance`. It is
    meant to be owned by a single update loop; concurrent ``advance`` and
    sampling from several threads needs external locking.
    """

    def __init__(self, sections: Iterable[PathSection] = (), scale: float = 1.0) -> None:
        self._sections: tuple[PathSection, ...] = tuple(sections)
        self._scale = float(scale)
        self._cursor = 0
        self._elapsed = 0.0

    @property
    def sections(self) -> tuple[PathSection, ...]:
        return self._sections

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def cursor(self) -> tuple[int, float]:
        """Current ``(segment index, time inside segment)``."""
        return (self._cursor, self._elapsed)

    def __len__(self) -> int:
        return len(self._sections)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathEvaluator):
            return NotImplemented
        return self._sections == other._sections and self._scale == other._scale

    def __hash__(self) -> int:
        return hash((self._sections, self._scale))

    def __repr__(self) -> str:
        return f"PathEvaluator(sections={list(self._sections)!r}, scale={self._scale!r})"

    def is_static(self) -> bool:
        return not self._sections

    def is_closed(self) -> bool:
        if not self._sections:
            return False
        return self._sections[-1].position == ZERO3

    def total_time(self) -> float:
        return float(sum(section.time for section in self._sections))

    def validate(self) -> None:
        for index, section in enumerate(self._sections):
            if not section.time > 0.0:
                raise ValidationError(
                    f"path section {index} has non-positive time {section.time}"
                )

    # -----------------------------------------------------------------
    # stateless sampling
    # -----------------------------------------------------------------
    def sample(self, t: float) -> np.ndarray:
        """Interpolated position ``t`` seconds after the path start."""
        count = len(self._sections)
        if count == 0:
            return np.zeros(3, dtype=np.float64)
        if count == 1:
            section = self._sections[0]
            u = min(max(float(t) / section.time, 0.0), 1.0)
            return self._keyframe(0) * u
        segment, local = self._locate(float(t))
        return self._position_segment(segment, local / self._sections[segment].time)

    def sample_look_at(self, t: float) -> np.ndarray:
        """Interpolated look-at target ``t`` seconds after the path start."""
        count = len(self._sections)
        if count == 0:
            return np.zeros(3, dtype=np.float64)
        if count == 1:
            return self._keyframe(0)
        total = self.total_time()
        segment, local = self._locate(float(t) % total)
        return self._look_at_segment(segment, local / self._sections[segment].time)

    # -----------------------------------------------------------------
    # cursor
    # -----------------------------------------------------------------
    def advance(self, dt: float) -> None:
        """Move the cursor forward by ``dt`` seconds, rolling over segments."""
        if not self._sections:
            return
        self.validate()
        self._elapsed += float(dt)
        while self._elapsed > self._sections[self._cursor].time:
            self._elapsed -= self._sections[self._cursor].time
            self._cursor = (self._cursor + 1) % len(self._sections)

    def reset(self) -> None:
        self._cursor = 0
        self._elapsed = 0.0

    def position(self) -> np.ndarray:
        """Position at the cursor."""
        count = len(self._sections)
        if count == 0:
            return np.zeros(3, dtype=np.float64)
        u = self._elapsed / self._sections[self._cursor].time
        if count == 1:
            return self._keyframe(0) * u
        return self._position_segment(self._cursor, u)

    def look_at(self) -> np.ndarray:
        """Look-at target at the cursor."""
        count = len(self._sections)
        if count == 0:
            return np.zeros(3, dtype=np.float64)
        if count == 1:
            return self._keyframe(0)
        u = self._elapsed / self._sections[self._cursor].time
        return self._look_at_segment(self._cursor, u)

    # -----------------------------------------------------------------
    # internals
    # -----------------------------------------------------------------
    def _keyframe(self, index: int) -> np.ndarray:
        return np.asarray(self._sections[index].position, dtype=np.float64) * self._scale

    def _anchor(self, index: int) -> np.ndarray:
        """Position control point; index 0 is the origin, ``i`` is section ``i - 1``."""
        count = len(self._sections)
        if self.is_closed():
            index %= count
        else:
            index = min(max(index, 0), count)
        if index == 0:
            return np.zeros(3, dtype=np.float64)
        return self._keyframe(index - 1)

    def _locate(self, t: float) -> tuple[int, float]:
        total = self.total_time()
        if self.is_closed():
            t = t % total
        else:
            t = min(max(t, 0.0), total)

        last = len(self._sections) - 1
        for index, section in enumerate(self._sections):
            if t <= section.time or index == last:
                return index, min(t, section.time)
            t -= section.time
        return last, self._sections[last].time

    def _position_segment(self, segment: int, u: float) -> np.ndarray:
        return _catmull_rom_segment(
            self._anchor(segment - 1),
            self._anchor(segment),
            self._anchor(segment + 1),
            self._anchor(segment + 2),
            u,
        )

    def _look_at_segment(self, segment: int, u: float) -> np.ndarray:
        count = len(self._sections)
        return _catmull_rom_segment(
            self._keyframe((segment - 2) % count),
            self._keyframe((segment - 1) % count),
            self._keyframe(segment % count),
            self._keyframe((segment + 1) % count),
            u,
        )
