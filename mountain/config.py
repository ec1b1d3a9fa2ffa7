"""Configuration models for terrain synthesis, shadows, and erosion."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
import math
from typing import Any


DEFAULT_SIZE = 256
DEFAULT_SUN_DIRECTION = (1.0, 4.0, 0.5)


class ConfigError(ValueError):
    """Raised when settings are rejected before any simulation tick runs."""


class ShadowMethod(str, Enum):
    PROPAGATION = "propagation"
    RAY_MARCH = "ray_march"


class GenerationStrategy(str, Enum):
    """Heightmap generation strategies understood by the synthesizer."""

    FBM = "fbm"
    RIPPLE = "ripple"


@dataclass(frozen=True)
class NoiseSettings:
    """Controls fractal noise synthesis."""

    seed: int = 0
    octaves: int = 4
    roughness: float = 1.3
    lacunarity: float = 3.0
    persistence: float = 0.15
    sharpness: float = 0.0
    offset: float = 0.0
    center: tuple[float, float] = (0.5, -0.5)

    def validate(self) -> "NoiseSettings":
        if self.octaves < 1:
            raise ConfigError("octaves must be >= 1")
        if self.sharpness < 0:
            raise ConfigError("sharpness must be >= 0")
        _require_finite(
            "noise",
            roughness=self.roughness,
            lacunarity=self.lacunarity,
            persistence=self.persistence,
            sharpness=self.sharpness,
            offset=self.offset,
            center_x=self.center[0],
            center_y=self.center[1],
        )
        return self


@dataclass(frozen=True)
class ErosionSettings:
    """Controls droplet hydraulic erosion."""

    max_lifetime: int = 30
    radius: int = 3
    inertia: float = 0.3
    capacity_factor: float = 3.0
    min_capacity: float = 0.01
    erode_speed: float = 0.3
    deposit_speed: float = 0.3
    evaporation_speed: float = 0.01
    gravity: float = 4.0
    start_speed: float = 1.0
    start_water: float = 1.0
    droplets_per_step: int = 64

    def validate(self) -> "ErosionSettings":
        if self.radius < 1:
            raise ConfigError("erosion radius must be >= 1")
        if self.max_lifetime < 1:
            raise ConfigError("max_lifetime must be >= 1")
        if self.droplets_per_step < 1:
            raise ConfigError("droplets_per_step must be >= 1")
        non_negative = {
            "capacity_factor": self.capacity_factor,
            "min_capacity": self.min_capacity,
            "erode_speed": self.erode_speed,
            "deposit_speed": self.deposit_speed,
            "evaporation_speed": self.evaporation_speed,
            "gravity": self.gravity,
            "start_speed": self.start_speed,
            "start_water": self.start_water,
        }
        _require_finite("erosion", inertia=self.inertia, **non_negative)
        for name, value in non_negative.items():
            if value < 0:
                raise ConfigError(f"{name} must be >= 0")
        if not 0.0 <= self.inertia <= 1.0:
            raise ConfigError("inertia must be in [0, 1]")
        if self.evaporation_speed > 1.0:
            raise ConfigError("evaporation_speed must be in [0, 1]")
        return self


@dataclass(frozen=True)
class ShadowSettings:
    """Controls the directional shadow pass."""

    method: ShadowMethod = ShadowMethod.PROPAGATION
    slope: float = 0.01
    step_scale: float = 0.5
    max_iterations: int = 256

    def validate(self) -> "ShadowSettings":
        try:
            ShadowMethod(self.method)
        except ValueError as exc:
            raise ConfigError(f"unknown shadow method: {self.method!r}") from exc
        _require_finite("shadow", slope=self.slope, step_scale=self.step_scale)
        if self.step_scale < 0:
            raise ConfigError("step_scale must be >= 0")
        if self.max_iterations < 1:
            raise ConfigError("max_iterations must be >= 1")
        return self


@dataclass(frozen=True)
class GeneratorConfig:
    """Primary simulation configuration."""

    width: int = DEFAULT_SIZE
    height: int = DEFAULT_SIZE
    strategy: GenerationStrategy = GenerationStrategy.FBM
    sun_direction: tuple[float, float, float] = DEFAULT_SUN_DIRECTION
    noise: NoiseSettings = field(default_factory=NoiseSettings)
    erosion: ErosionSettings = field(default_factory=ErosionSettings)
    shadow: ShadowSettings = field(default_factory=ShadowSettings)

    def validate(self) -> "GeneratorConfig":
        if self.width <= 0 or self.height <= 0:
            raise ConfigError("width and height must be positive")
        try:
            GenerationStrategy(self.strategy)
        except ValueError as exc:
            raise ConfigError(f"unknown generation strategy: {self.strategy!r}") from exc
        normalize_direction(self.sun_direction)
        self.noise.validate()
        self.erosion.validate()
        self.shadow.validate()
        return self

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["strategy"] = GenerationStrategy(self.strategy).value
        payload["shadow"]["method"] = ShadowMethod(self.shadow.method).value
        return payload


def normalize_direction(direction: tuple[float, ...]) -> tuple[float, float, float]:
    """Return `direction` scaled to unit length, rejecting degenerate vectors."""

    if len(direction) != 3:
        raise ConfigError("sun direction must have three components")
    x, y, z = (float(c) for c in direction)
    length = math.sqrt(x * x + y * y + z * z)
    if not math.isfinite(length) or length == 0.0:
        raise ConfigError("sun direction must be finite and non-zero")
    return (x / length, y / length, z / length)


def _require_finite(group: str, **values: float) -> None:
    for name, value in values.items():
        if not math.isfinite(float(value)):
            raise ConfigError(f"{group} setting {name} must be finite")
