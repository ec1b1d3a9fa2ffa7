"""Circular weighted brush used to spread erosion around a droplet."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import numpy as np

from mountain.config import ConfigError


@dataclass(frozen=True)
class BrushKernel:
    radius: int
    offsets: np.ndarray
    weights: np.ndarray

    def __len__(self) -> int:
        return int(self.weights.shape[0])


@lru_cache(maxsize=16)
def build_brush_kernel(radius: int) -> BrushKernel:
    """Build the disc of offsets with dx^2 + dy^2 < radius^2.

    Weights fall off linearly with distance and sum to 1. The result is
    cached per radius and its arrays are read-only.
    """

    radius = int(radius)
    if radius < 1:
        raise ConfigError("brush radius must be >= 1")

    span = np.arange(-radius, radius + 1, dtype=np.int32)
    dy, dx = np.meshgrid(span, span, indexing="ij")
    sqr_dst = dx * dx + dy * dy
    inside = sqr_dst < radius * radius

    offsets = np.stack((dx[inside], dy[inside]), axis=-1).astype(np.int32)
    weights = 1.0 - np.sqrt(sqr_dst[inside].astype(np.float64)) / radius
    weights = weights / weights.sum()

    offsets.setflags(write=False)
    weights.setflags(write=False)
    return BrushKernel(radius, offsets, weights)
