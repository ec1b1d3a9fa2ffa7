"""Tick driver tying the dispatch scheduler to a compute backend."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Callable

import numpy as np

from mountain.backend import ComputeBackend, CpuBackend
from mountain.brush import BrushKernel, build_brush_kernel
from mountain.config import (
    ErosionSettings,
    GeneratorConfig,
    NoiseSettings,
    ShadowSettings,
    normalize_direction,
)
from mountain.dispatch import DispatchScheduler, Phase, TickDecision, TriggerEvent
from mountain.heightfield import HeightField
from mountain.rng import RngStream
from mountain.shadow import ShadowField


logger = logging.getLogger(__name__)


@dataclass
class SimulationContext:
    """Everything a phase reads or writes, passed explicitly to each call."""

    config: GeneratorConfig
    heights: HeightField
    shadows: ShadowField
    kernel: BrushKernel
    erosion_rng: np.random.Generator


@dataclass(frozen=True)
class Snapshot:
    """Read-only views of the current grids."""

    tick: int
    heights: np.ndarray
    shadows: np.ndarray


Listener = Callable[[Phase, Snapshot], None]


def _read_only(values: np.ndarray) -> np.ndarray:
    view = values.view()
    view.flags.writeable = False
    return view


class Simulation:
    """Owns the context and scheduler; `tick()` runs whatever phases fire."""

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        *,
        backend: ComputeBackend | None = None,
        rng: RngStream | None = None,
        generate_on_start: bool = True,
    ) -> None:
        cfg = (config or GeneratorConfig()).validate()
        stream = rng or RngStream(0)
        self.backend = backend or CpuBackend()
        self.scheduler = DispatchScheduler(generate_on_start=generate_on_start)
        self.context = SimulationContext(
            config=cfg,
            heights=HeightField.flat(cfg.width, cfg.height),
            shadows=ShadowField(np.zeros((cfg.height, cfg.width), dtype=np.float32)),
            kernel=build_brush_kernel(cfg.erosion.radius),
            erosion_rng=stream.fork("erosion").generator(),
        )
        self._listeners: list[Listener] = []

    @property
    def config(self) -> GeneratorConfig:
        return self.context.config

    def post(self, event: TriggerEvent | str) -> None:
        self.scheduler.post(event)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener(phase, snapshot)`; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def configure(
        self,
        *,
        noise: NoiseSettings | None = None,
        erosion: ErosionSettings | None = None,
        shadow: ShadowSettings | None = None,
        sun_direction: tuple[float, float, float] | None = None,
    ) -> GeneratorConfig:
        """Swap in new settings after validating them.

        On `ConfigError` the previous settings stay in place and the
        scheduler is untouched.
        """

        cfg = self.context.config
        updated = replace(
            cfg,
            noise=noise if noise is not None else cfg.noise,
            erosion=erosion if erosion is not None else cfg.erosion,
            shadow=shadow if shadow is not None else cfg.shadow,
            sun_direction=sun_direction if sun_direction is not None else cfg.sun_direction,
        ).validate()
        if updated.erosion.radius != self.context.kernel.radius:
            self.context.kernel = build_brush_kernel(updated.erosion.radius)
        self.context.config = updated
        return updated

    def snapshot(self) -> Snapshot:
        return Snapshot(
            tick=self.scheduler.tick_count,
            heights=_read_only(self.context.heights.values),
            shadows=_read_only(self.context.shadows.values),
        )

    def tick(self) -> TickDecision:
        decision = self.scheduler.tick()
        logger.debug(
            "Tick %d: heightmap=%s shadow=%s erosion=%s",
            decision.tick,
            decision.heightmap,
            decision.shadow,
            decision.erosion,
        )
        for phase in decision.phases():
            self._run(phase)
            self._notify(phase)
        return decision

    def run(self, ticks: int) -> list[TickDecision]:
        return [self.tick() for _ in range(ticks)]

    def _run(self, phase: Phase) -> None:
        ctx = self.context
        cfg = ctx.config
        if phase is Phase.HEIGHTMAP:
            ctx.heights = self.backend.synthesize_heights(cfg.noise, cfg.width, cfg.height, cfg.strategy)
        elif phase is Phase.SHADOW:
            ctx.shadows = self.backend.cast_shadows(
                ctx.heights,
                normalize_direction(cfg.sun_direction),
                cfg.shadow,
            )
        elif phase is Phase.EROSION:
            ctx.heights = self.backend.erode_step(ctx.heights, cfg.erosion, ctx.kernel, ctx.erosion_rng)

    def _notify(self, phase: Phase) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(phase, snap)
