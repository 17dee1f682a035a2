"""Simulation parameters.

``SimulationConfig`` is read once at construction. Hot edits go through
``replace`` which returns a new, validated record.
"""
import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from stablefluids.errors import ConfigError
from stablefluids.utils.parser import precision as parse_precision
from stablefluids.utils.reader import load_yaml

logger = logging.getLogger(__name__)

DYE_PATTERNS = ("blank", "checkerboard", "stripes", "center")


@dataclass(frozen=True)
class SimulationConfig:
    # grid
    width: int = 256
    height: int = 256
    precision: str = "f32"

    # diffusion
    velocity_viscosity: float = 0.1
    dye_viscosity: float = 0.1
    diffusion_iterations: int = 20

    # projection
    projection_iterations: int = 30

    # advection
    velocity_dissipation: float = 1.0
    dye_dissipation: float = 0.998
    timestep: float = 0.5

    # pointer injection
    injector_radius: float = 0.05
    velocity_injector_scale: float = 10.0
    dye_injector_scale: float = 0.05
    pointer_threshold: float = 0.001

    # seeding
    dye_channels: int = 1
    initial_dye: str = "checkerboard"
    seed_velocity_amplitude: float = 0.5
    seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.width < 3 or self.height < 3:
            raise ConfigError(f"Grid must be at least 3x3, got {self.width}x{self.height}")
        parse_precision(self.precision)
        for name in ("velocity_viscosity", "dye_viscosity", "timestep"):
            if getattr(self, name) < 0.0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        for name in ("diffusion_iterations", "projection_iterations"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1, got {getattr(self, name)}")
        for name in ("velocity_dissipation", "dye_dissipation"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigError(f"{name} must be in (0, 1], got {value}")
        if self.injector_radius <= 0.0:
            raise ConfigError(f"injector_radius must be > 0, got {self.injector_radius}")
        if self.pointer_threshold < 0.0:
            raise ConfigError(f"pointer_threshold must be >= 0, got {self.pointer_threshold}")
        if self.dye_channels not in (1, 4):
            raise ConfigError(f"dye_channels must be 1 or 4, got {self.dye_channels}")
        if self.initial_dye not in DYE_PATTERNS:
            raise ConfigError(f"initial_dye must be one of {DYE_PATTERNS}, got '{self.initial_dye}'")

    @property
    def resolution(self) -> tuple[int, int]:
        return self.width, self.height

    def replace(self, **changes: Any) -> "SimulationConfig":
        try:
            return dataclasses.replace(self, **changes)
        except TypeError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SimulationConfig":
        """Reads the ``simulation`` section of a YAML file (or the whole file if absent)."""
        cfg = load_yaml(path)
        section = cfg.get("simulation", cfg)
        logger.info(f"Loaded simulation config from {path}")
        return cls.from_dict(section)
