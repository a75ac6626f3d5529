from __future__ import annotations

"""Color and vector helpers: sRGB transfer curve, vec3 coercion, bit casts."""

import math
from typing import Sequence

import numpy as np

Vec3 = tuple[float, float, float]

ZERO3: Vec3 = (0.0, 0.0, 0.0)
ONE3: Vec3 = (1.0, 1.0, 1.0)

_SRGB_LINEAR_CUTOFF = 0.0031308
_SRGB_ENCODED_CUTOFF = 0.04045


def to_srgb(value: float) -> float:
    """Gamma-encode one linear channel.

    Values above 1 follow the same power segment so HDR light colors survive.
    """
    value = float(value)
    if value <= 0.0:
        return 0.0
    if value <= _SRGB_LINEAR_CUTOFF:
        return 12.92 * value
    return 1.055 * math.pow(value, 1.0 / 2.4) - 0.055


def from_srgb(value: float) -> float:
    value = float(value)
    if value <= 0.0:
        return 0.0
    if value <= _SRGB_ENCODED_CUTOFF:
        return value / 12.92
    return math.pow((value + 0.055) / 1.055, 2.4)


def to_srgb3(vec: Sequence[float]) -> Vec3:
    return (to_srgb(vec[0]), to_srgb(vec[1]), to_srgb(vec[2]))


def from_srgb3(vec: Sequence[float]) -> Vec3:
    return (from_srgb(vec[0]), from_srgb(vec[1]), from_srgb(vec[2]))


def as_vec3(value: float | Sequence[float]) -> Vec3:
    """Coerce a scalar or a length-3 sequence into a float triple."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        scalar = float(arr)
        return (scalar, scalar, scalar)
    if arr.shape != (3,):
        raise ValueError("vector must be a scalar or length 3")
    return (float(arr[0]), float(arr[1]), float(arr[2]))


def bits_from_floats(values: np.ndarray) -> np.ndarray:
    """Reinterpret float32 storage as uint32 without numeric conversion."""
    return np.asarray(values, dtype=np.float32).view(np.uint32)


def floats_from_bits(values: np.ndarray) -> np.ndarray:
    """Reinterpret uint32 storage as float32 without numeric conversion."""
    return np.asarray(values, dtype=np.uint32).view(np.float32)
