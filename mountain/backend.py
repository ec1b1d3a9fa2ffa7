"""Compute backends that execute the synthesis, shadow, and erosion phases."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Callable, Protocol

import numpy as np

from mountain.brush import BrushKernel
from mountain.config import (
    ErosionSettings,
    GenerationStrategy,
    NoiseSettings,
    ShadowMethod,
    ShadowSettings,
)
from mountain.erosion import ErosionMetrics, erode
from mountain.heightfield import HeightField, normalize01, raw_heights
from mountain.shadow import ShadowField, propagate_shadow_rows, ray_march_rows


logger = logging.getLogger(__name__)


class ComputeBackend(Protocol):
    """Execution substrate for the three phases."""

    def synthesize_heights(
        self,
        settings: NoiseSettings,
        width: int,
        height: int,
        strategy: GenerationStrategy,
    ) -> HeightField:
        ...

    def cast_shadows(
        self,
        heights: HeightField,
        sun_direction: tuple[float, float, float],
        settings: ShadowSettings,
    ) -> ShadowField:
        ...

    def erode_step(
        self,
        heights: HeightField,
        settings: ErosionSettings,
        kernel: BrushKernel,
        rng: np.random.Generator,
    ) -> HeightField:
        ...


def row_bands(height: int, count: int) -> list[slice]:
    """Split `height` rows into at most `count` contiguous, disjoint bands."""

    count = max(1, min(int(count), height))
    edges = np.linspace(0, height, count + 1).round().astype(int)
    return [slice(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


class CpuBackend:
    """In-memory numpy backend.

    Pixel-parallel passes are split into row bands over a thread pool when
    `workers > 1`; each band writes only its own rows. Erosion always runs
    on the calling thread.
    """

    def __init__(self, workers: int = 1) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.workers = int(workers)
        self.last_erosion: ErosionMetrics | None = None

    def synthesize_heights(
        self,
        settings: NoiseSettings,
        width: int,
        height: int,
        strategy: GenerationStrategy = GenerationStrategy.FBM,
    ) -> HeightField:
        raw = self._by_rows(
            height,
            lambda rows: raw_heights(width, height, settings, strategy=strategy, rows=rows),
        )
        logger.info("Synthesized %dx%d heightmap (strategy=%s)", width, height, GenerationStrategy(strategy).value)
        return HeightField(normalize01(raw))

    def cast_shadows(
        self,
        heights: HeightField,
        sun_direction: tuple[float, float, float],
        settings: ShadowSettings,
    ) -> ShadowField:
        values = heights.values
        if ShadowMethod(settings.method) is ShadowMethod.PROPAGATION:
            shadow = self._by_rows(
                heights.height,
                lambda rows: propagate_shadow_rows(values[rows], settings.slope),
            )
        else:
            shadow = self._by_rows(
                heights.height,
                lambda rows: ray_march_rows(values, sun_direction, settings, rows),
            )
        return ShadowField(shadow)

    def erode_step(
        self,
        heights: HeightField,
        settings: ErosionSettings,
        kernel: BrushKernel,
        rng: np.random.Generator,
    ) -> HeightField:
        self.last_erosion = erode(heights, settings, rng, kernel=kernel)
        return heights

    def _by_rows(self, height: int, compute: Callable[[slice], np.ndarray]) -> np.ndarray:
        bands = row_bands(height, self.workers)
        if len(bands) == 1:
            return compute(bands[0])
        with ThreadPoolExecutor(max_workers=len(bands), thread_name_prefix="mountain-rows") as pool:
            parts = list(pool.map(compute, bands))
        return np.concatenate(parts, axis=0)
