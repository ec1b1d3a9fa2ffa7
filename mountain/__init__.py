"""Procedural terrain synthesis, directional shadows, and droplet erosion."""

from .config import (
    DEFAULT_SIZE,
    DEFAULT_SUN_DIRECTION,
    ConfigError,
    ErosionSettings,
    GenerationStrategy,
    GeneratorConfig,
    NoiseSettings,
    ShadowMethod,
    ShadowSettings,
)
from .dispatch import DispatchScheduler, Phase, TickDecision, TriggerEvent
from .simulation import Simulation, Snapshot

__all__ = [
    "DEFAULT_SIZE",
    "DEFAULT_SUN_DIRECTION",
    "ConfigError",
    "DispatchScheduler",
    "ErosionSettings",
    "GenerationStrategy",
    "GeneratorConfig",
    "NoiseSettings",
    "Phase",
    "ShadowMethod",
    "ShadowSettings",
    "Simulation",
    "Snapshot",
    "TickDecision",
    "TriggerEvent",
]
