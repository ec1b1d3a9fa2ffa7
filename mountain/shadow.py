"""Directional self-shadowing derived from a heightfield."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from mountain.config import ShadowMethod, ShadowSettings, normalize_direction
from mountain.heightfield import HeightField, bilinear_sample


@dataclass
class ShadowField:
    """Shadow grid parallel to a HeightField, clamped to [0, 1].

    Ray-march output is occlusion: 1 is fully shadowed, 0 is lit. Propagation
    output is the height of the shadow surface cast along +x; a cell is in
    shadow where this exceeds its own height.
    """

    values: np.ndarray

    def __post_init__(self) -> None:
        values = np.asarray(self.values, dtype=np.float32)
        if values.ndim != 2:
            raise ValueError("shadow values must be a 2D array")
        self.values = np.clip(values, 0.0, 1.0).astype(np.float32)

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])


def propagate_shadow_rows(heights: np.ndarray, slope: float) -> np.ndarray:
    """Sweep shadow heights along +x, light arriving from -x.

    Column 0 is `height - slope`; every later column is the max of the
    previous column's height and shadow, minus `slope`. Values are raw,
    not clamped.
    """

    h = heights.astype(np.float64, copy=False)
    shadow = np.empty_like(h)
    shadow[:, 0] = h[:, 0] - slope
    for x in range(1, h.shape[1]):
        shadow[:, x] = np.maximum(h[:, x - 1], shadow[:, x - 1]) - slope
    return shadow


def ray_march_rows(
    heights: np.ndarray,
    sun_direction: tuple[float, float, float],
    settings: ShadowSettings,
    rows: slice | None = None,
) -> np.ndarray:
    """March toward the sun from every cell in `rows`.

    Coordinates are in the unit domain with height as the vertical axis.
    A ray that leaves the domain is lit (0); a ray that passes under the
    terrain, or runs out of iterations, is shadowed (1).
    """

    full_height, full_width = heights.shape
    ys = np.arange(full_height)[rows if rows is not None else slice(None)]
    band_shape = (ys.size, full_width)
    sx, sy, sz = normalize_direction(sun_direction)
    if sy <= 0.0:
        return np.ones(band_shape, dtype=np.float32)

    yy, xx = np.meshgrid(ys.astype(np.float64), np.arange(full_width, dtype=np.float64), indexing="ij")
    result = np.ones(band_shape[0] * band_shape[1], dtype=np.float32)
    live = np.arange(result.size)
    ray_u = (xx / full_width).ravel()
    ray_v = (yy / full_height).ravel()
    ray_h = heights[yy.astype(np.int64), xx.astype(np.int64)].astype(np.float64).ravel()
    min_step = 1.0 / full_width

    for _ in range(settings.max_iterations):
        if live.size == 0:
            break
        sampled = bilinear_sample(heights, ray_u * full_width, ray_v * full_height)
        step = np.maximum(min_step, (ray_h - sampled) * settings.step_scale)
        ray_u = ray_u + sx * step
        ray_v = ray_v + sz * step
        ray_h = ray_h + sy * step

        exited = (ray_u < 0.0) | (ray_u >= 1.0) | (ray_v < 0.0) | (ray_v >= 1.0) | (ray_h > 1.0)
        result[live[exited]] = 0.0

        terrain = bilinear_sample(heights, ray_u * full_width, ray_v * full_height)
        blocked = ~exited & (terrain > ray_h)
        result[live[blocked]] = 1.0

        keep = ~(exited | blocked)
        live = live[keep]
        ray_u = ray_u[keep]
        ray_v = ray_v[keep]
        ray_h = ray_h[keep]

    return result.reshape(band_shape)


def cast_shadows(
    heights: HeightField,
    sun_direction: tuple[float, float, float],
    settings: ShadowSettings | None = None,
) -> ShadowField:
    """Compute a ShadowField with the method chosen in `settings`."""

    cfg = settings or ShadowSettings()
    method = ShadowMethod(cfg.method)
    if method is ShadowMethod.PROPAGATION:
        return ShadowField(propagate_shadow_rows(heights.values, cfg.slope))
    return ShadowField(ray_march_rows(heights.values, sun_direction, cfg))
