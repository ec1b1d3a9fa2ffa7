"""Droplet-based hydraulic erosion over a shared heightfield."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math
from typing import Iterable

import numpy as np

from mountain.brush import BrushKernel, build_brush_kernel
from mountain.config import ErosionSettings
from mountain.heightfield import HeightField


logger = logging.getLogger(__name__)

MIN_DIRECTION_LENGTH = 1e-4


class DropletEnd(str, Enum):
    LIFETIME = "lifetime"
    STALLED = "stalled"
    LEFT_DOMAIN = "left_domain"


@dataclass
class DropletState:
    """One simulated water particle. Position is normalized to [0, 1)."""

    x: float
    y: float
    speed: float
    water: float
    dir_x: float = 0.0
    dir_y: float = 0.0
    sediment: float = 0.0
    steps: int = 0
    eroded: float = 0.0
    deposited: float = 0.0
    end: DropletEnd | None = None

    @property
    def alive(self) -> bool:
        return self.end is None


@dataclass(frozen=True)
class ErosionMetrics:
    droplets: int
    steps: int
    eroded: float
    deposited: float
    ended_lifetime: int
    ended_stalled: int
    ended_left_domain: int


def height_and_gradient(values: np.ndarray, px: float, py: float) -> tuple[float, float, float]:
    """Bilinear height and gradient at cell coordinates (px, py).

    Neighbor lookups past the last row or column reuse the edge cell.
    """

    rows, cols = values.shape
    node_x = min(int(px), cols - 1)
    node_y = min(int(py), rows - 1)
    u = px - node_x
    v = py - node_y
    east = min(node_x + 1, cols - 1)
    south = min(node_y + 1, rows - 1)

    nw = float(values[node_y, node_x])
    ne = float(values[node_y, east])
    sw = float(values[south, node_x])
    se = float(values[south, east])

    grad_x = (ne - nw) * (1.0 - v) + (se - sw) * v
    grad_y = (sw - nw) * (1.0 - u) + (se - ne) * u
    height = nw * (1.0 - u) * (1.0 - v) + ne * u * (1.0 - v) + sw * (1.0 - u) * v + se * u * v
    return height, grad_x, grad_y


def _deposit(values: np.ndarray, node_x: int, node_y: int, u: float, v: float, amount: float) -> float:
    rows, cols = values.shape
    placed = 0.0
    for cx, cy, weight in (
        (node_x, node_y, (1.0 - u) * (1.0 - v)),
        (node_x + 1, node_y, u * (1.0 - v)),
        (node_x, node_y + 1, (1.0 - u) * v),
        (node_x + 1, node_y + 1, u * v),
    ):
        if cx < cols and cy < rows:
            share = amount * weight
            values[cy, cx] += share
            placed += share
    return placed


def _erode(values: np.ndarray, node_x: int, node_y: int, amount: float, kernel: BrushKernel) -> float:
    rows, cols = values.shape
    removed = 0.0
    for (ox, oy), weight in zip(kernel.offsets.tolist(), kernel.weights.tolist()):
        cx = min(max(node_x + ox, 0), cols - 1)
        cy = min(max(node_y + oy, 0), rows - 1)
        current = float(values[cy, cx])
        take = min(amount * weight, max(current, 0.0))
        values[cy, cx] = current - take
        removed += take
    return removed


def simulate_droplet(
    heights: HeightField,
    settings: ErosionSettings,
    kernel: BrushKernel,
    start: tuple[float, float],
) -> DropletState:
    """Run one droplet to completion, mutating `heights` in place.

    `start` is a normalized position and must lie in [0, 1)^2.
    """

    start_x, start_y = float(start[0]), float(start[1])
    if not (0.0 <= start_x < 1.0 and 0.0 <= start_y < 1.0):
        raise ValueError(f"droplet start must lie in [0, 1)^2, got ({start_x}, {start_y})")

    values = heights.values
    rows, cols = values.shape
    drop = DropletState(
        x=start_x,
        y=start_y,
        speed=settings.start_speed,
        water=settings.start_water,
    )
    inertia = settings.inertia

    for _ in range(settings.max_lifetime):
        px = drop.x * cols
        py = drop.y * rows
        node_x = min(int(px), cols - 1)
        node_y = min(int(py), rows - 1)
        cell_u = px - node_x
        cell_v = py - node_y

        height, grad_x, grad_y = height_and_gradient(values, px, py)

        dir_x = drop.dir_x * inertia - grad_x * (1.0 - inertia)
        dir_y = drop.dir_y * inertia - grad_y * (1.0 - inertia)
        length = math.hypot(dir_x, dir_y)
        if length == 0.0:
            drop.end = DropletEnd.STALLED
            break
        length = max(length, MIN_DIRECTION_LENGTH)
        dir_x /= length
        dir_y /= length

        # One step covers one grid cell.
        next_x = drop.x + dir_x / cols
        next_y = drop.y + dir_y / rows
        if not (0.0 <= next_x < 1.0 and 0.0 <= next_y < 1.0):
            drop.end = DropletEnd.LEFT_DOMAIN
            break

        drop.x, drop.y = next_x, next_y
        drop.dir_x, drop.dir_y = dir_x, dir_y
        drop.steps += 1

        new_height, _, _ = height_and_gradient(values, next_x * cols, next_y * rows)
        delta = new_height - height
        capacity = max(
            settings.min_capacity,
            -delta * drop.speed * drop.water * settings.capacity_factor,
        )

        if drop.sediment > capacity or delta > 0.0:
            if delta > 0.0:
                amount = min(delta, drop.sediment)
            else:
                amount = (drop.sediment - capacity) * settings.deposit_speed
            drop.sediment -= amount
            drop.deposited += _deposit(values, node_x, node_y, cell_u, cell_v, amount)
        else:
            amount = min((capacity - drop.sediment) * settings.erode_speed, -delta)
            removed = _erode(values, node_x, node_y, amount, kernel)
            drop.sediment += removed
            drop.eroded += removed

        drop.speed = math.sqrt(max(0.0, drop.speed * drop.speed + delta * settings.gravity))
        drop.water *= 1.0 - settings.evaporation_speed
    else:
        drop.end = DropletEnd.LIFETIME

    return drop


def erode(
    heights: HeightField,
    settings: ErosionSettings,
    rng: np.random.Generator,
    *,
    kernel: BrushKernel | None = None,
    starts: Iterable[tuple[float, float]] | None = None,
) -> ErosionMetrics:
    """Process a batch of droplets one after another on `heights`.

    Each droplet sees every change made by the ones before it. Start
    positions are drawn uniformly from [0, 1)^2 unless `starts` is given.
    """

    brush = kernel if kernel is not None else build_brush_kernel(settings.radius)
    if starts is None:
        starts = rng.random(size=(settings.droplets_per_step, 2)).tolist()

    ends = {end: 0 for end in DropletEnd}
    droplets = 0
    steps = 0
    eroded = 0.0
    deposited = 0.0
    for start in starts:
        drop = simulate_droplet(heights, settings, brush, start)
        droplets += 1
        steps += drop.steps
        eroded += drop.eroded
        deposited += drop.deposited
        ends[drop.end] += 1

    metrics = ErosionMetrics(
        droplets=droplets,
        steps=steps,
        eroded=eroded,
        deposited=deposited,
        ended_lifetime=ends[DropletEnd.LIFETIME],
        ended_stalled=ends[DropletEnd.STALLED],
        ended_left_domain=ends[DropletEnd.LEFT_DOMAIN],
    )
    logger.debug(
        "Erosion batch: droplets=%d steps=%d eroded=%.5f deposited=%.5f",
        metrics.droplets,
        metrics.steps,
        metrics.eroded,
        metrics.deposited,
    )
    return metrics
