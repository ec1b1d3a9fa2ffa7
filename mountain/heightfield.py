"""Heightfield container and fractal heightmap synthesis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from scipy.ndimage import map_coordinates

from mountain.config import GenerationStrategy, NoiseSettings
from mountain.noise import NoiseField


@dataclass
class HeightField:
    """Row-major elevation grid indexed `values[y, x]`.

    Erosion mutates `values` in place; synthesis replaces the whole field.
    """

    values: np.ndarray

    def __post_init__(self) -> None:
        values = np.asarray(self.values, dtype=np.float32)
        if values.ndim != 2:
            raise ValueError("height values must be a 2D array")
        if values.shape[0] == 0 or values.shape[1] == 0:
            raise ValueError("height values must be non-empty")
        if not np.isfinite(values).all():
            raise ValueError("height values must be finite")
        self.values = values

    @classmethod
    def flat(cls, width: int, height: int, level: float = 0.0) -> "HeightField":
        return cls(np.full((height, width), level, dtype=np.float32))

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    def sample(self, x: int, y: int) -> float:
        """Read the cell at (x, y), clamping out-of-range indices to the edge."""

        xx = min(max(int(x), 0), self.width - 1)
        yy = min(max(int(y), 0), self.height - 1)
        return float(self.values[yy, xx])

    def copy(self) -> "HeightField":
        return HeightField(self.values.copy())


def bilinear_sample(values: np.ndarray, sample_x: np.ndarray, sample_y: np.ndarray) -> np.ndarray:
    """Sample `values` at float cell coordinates, clamping at the edges."""

    height, width = values.shape
    x = np.clip(np.asarray(sample_x, dtype=np.float64), 0.0, width - 1)
    y = np.clip(np.asarray(sample_y, dtype=np.float64), 0.0, height - 1)
    return map_coordinates(values.astype(np.float64, copy=False), [y, x], order=1, mode="nearest")


RawBuilder = Callable[[int, int, NoiseSettings, slice], np.ndarray]


def fbm_rows(width: int, height: int, settings: NoiseSettings, rows: slice) -> np.ndarray:
    """Raw sharpness-weighted fractal sum for a band of rows."""

    noise = NoiseField(settings.seed)
    ys = np.arange(height, dtype=np.float64)[rows] / float(height)
    xs = np.arange(width, dtype=np.float64) / float(width)
    u = xs[None, :] + float(settings.center[0])
    v = ys[:, None] + float(settings.center[1])
    u, v = np.broadcast_arrays(u, v)

    total = np.zeros(u.shape, dtype=np.float64)
    cumulative_gradient = np.zeros(u.shape, dtype=np.float64)
    frequency = float(settings.roughness)
    amplitude = 1.0

    for _ in range(settings.octaves):
        sample, (dx, dy) = noise.evaluate(u * frequency, v * frequency)
        cumulative_gradient += np.hypot(dx, dy)
        remapped = (sample + 1.0) * 0.5 - settings.offset
        # Steep terrain so far damps the finer octaves on top of it.
        total += amplitude * remapped / (1.0 + settings.sharpness * cumulative_gradient)
        frequency *= settings.lacunarity
        amplitude *= settings.persistence

    return total


def ripple_rows(width: int, height: int, settings: NoiseSettings, rows: slice) -> np.ndarray:
    """Diagonal sine ripple, a deterministic test pattern."""

    ys = np.arange(height, dtype=np.float64)[rows]
    xs = np.arange(width, dtype=np.float64)
    return np.sin((xs[None, :] + ys[:, None]) / 10.0) * 5.0


_STRATEGIES: dict[GenerationStrategy, RawBuilder] = {
    GenerationStrategy.FBM: fbm_rows,
    GenerationStrategy.RIPPLE: ripple_rows,
}


def register_strategy(strategy: GenerationStrategy, builder: RawBuilder) -> None:
    _STRATEGIES[GenerationStrategy(strategy)] = builder


def raw_heights(
    width: int,
    height: int,
    settings: NoiseSettings,
    *,
    strategy: GenerationStrategy = GenerationStrategy.FBM,
    rows: slice | None = None,
) -> np.ndarray:
    """Un-normalized heights for `rows` (all rows by default)."""

    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive")
    try:
        builder = _STRATEGIES[GenerationStrategy(strategy)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"no builder registered for strategy {strategy!r}") from exc
    return builder(width, height, settings, rows if rows is not None else slice(None))


def normalize01(values: np.ndarray) -> np.ndarray:
    """Min-max normalize into [0, 1]; a flat field maps to all zeros."""

    lo = float(np.min(values))
    hi = float(np.max(values))
    if hi <= lo:
        return np.zeros(values.shape, dtype=np.float32)
    norm = (values - lo) / (hi - lo)
    return np.clip(norm, 0.0, 1.0).astype(np.float32)


def synthesize_heights(
    width: int,
    height: int,
    settings: NoiseSettings,
    *,
    strategy: GenerationStrategy = GenerationStrategy.FBM,
) -> HeightField:
    """Generate a normalized heightfield in one pass over every row."""

    raw = raw_heights(width, height, settings, strategy=strategy)
    return HeightField(normalize01(raw))
