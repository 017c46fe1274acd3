from __future__ import annotations

import math
import warnings
from dataclasses import dataclass

import numpy as np

from .constants import DEFAULT_DEBUG_ACCELERATION_SCALE


@dataclass(frozen=True)
class SimulationParameters:
    time_period: float
    delta_time: float
    initial_body_mass: float
    softening_length: float
    debug_acceleration_scale: float = DEFAULT_DEBUG_ACCELERATION_SCALE

    def __post_init__(self):
        for name in ("time_period", "delta_time", "initial_body_mass",
                     "softening_length", "debug_acceleration_scale"):
            val = float(getattr(self, name))
            if not math.isfinite(val):
                raise ValueError(f"{name} must be finite")
            object.__setattr__(self, name, val)
        if self.delta_time <= 0.0:
            raise ValueError("delta_time must be positive")
        if self.time_period < 0.0:
            raise ValueError("time_period must be >= 0")
        with np.errstate(over="ignore", divide="ignore"):
            ratio = np.float32(self.time_period) / np.float32(self.delta_time)
        if not np.isfinite(ratio):
            raise ValueError("time_period / delta_time is out of range")
        if self.initial_body_mass <= 0.0:
            raise ValueError("initial_body_mass must be positive")
        if self.softening_length <= 0.0:
            warnings.warn(
                "softening_length <= 0: coincident bodies produce non-finite accelerations",
                RuntimeWarning,
            )

    @property
    def iteration_count(self) -> int:
        # single-precision ratio, truncated: 0.3 / 0.1 -> 3
        return int(np.float32(self.time_period) / np.float32(self.delta_time))

    @property
    def softening_length_sq(self) -> float:
        return self.softening_length * self.softening_length
