from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .rng import RandomSource

_LOGGER = logging.getLogger("chipfx.params")

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class WaveShape(IntEnum):
    SQUARE = 0
    SAWTOOTH = 1
    SINE = 2
    NOISE = 3


# Record order of the float fields; persistence relies on it.
FLOAT_FIELDS: tuple[str, ...] = (
    "attack_time",
    "sustain_time",
    "sustain_punch",
    "decay_time",
    "start_frequency",
    "min_frequency",
    "slide",
    "delta_slide",
    "vibrato_depth",
    "vibrato_speed",
    "change_amount",
    "change_speed",
    "square_duty",
    "duty_sweep",
    "repeat_speed",
    "phaser_offset",
    "phaser_sweep",
    "lpf_cutoff",
    "lpf_cutoff_sweep",
    "lpf_resonance",
    "hpf_cutoff",
    "hpf_cutoff_sweep",
)


def to_single(value: float) -> float:
    """Round a float to the nearest IEEE-754 single precision value."""
    return float(np.float32(value))


class ParameterSet(BaseModel):
    """Synthesis input: every tunable value of one sound effect.

    Values are stored as given (no range checks); the engine clamps what it
    needs at render time. Floats are held at single precision so a set always
    survives a trip through the binary record unchanged.
    """

    seed: int = Field(default=0, ge=INT32_MIN, le=INT32_MAX)
    wave_shape: WaveShape = WaveShape.SQUARE

    # Envelope
    attack_time: float = 0.0
    sustain_time: float = 0.3
    sustain_punch: float = 0.0
    decay_time: float = 0.4

    # Frequency
    start_frequency: float = 0.3
    min_frequency: float = 0.0
    slide: float = 0.0
    delta_slide: float = 0.0
    vibrato_depth: float = 0.0
    vibrato_speed: float = 0.0

    # Tone change
    change_amount: float = 0.0
    change_speed: float = 0.0

    # Square wave
    square_duty: float = 0.0
    duty_sweep: float = 0.0

    repeat_speed: float = 0.0

    # Phaser
    phaser_offset: float = 0.0
    phaser_sweep: float = 0.0

    # Filters
    lpf_cutoff: float = 1.0
    lpf_cutoff_sweep: float = 0.0
    lpf_resonance: float = 0.0
    hpf_cutoff: float = 0.0
    hpf_cutoff_sweep: float = 0.0

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator(*FLOAT_FIELDS)
    @classmethod
    def _single_precision(cls, value: float) -> float:
        return to_single(value)

    def evolve(self, **changes: Any) -> "ParameterSet":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def floats(self) -> tuple[float, ...]:
        return tuple(getattr(self, name) for name in FLOAT_FIELDS)


def reset(rng: RandomSource) -> ParameterSet:
    """Baseline parameters with a fresh seed; the stream is reseeded from it."""
    seed = rng.random_seed()
    rng.seed(seed)
    _LOGGER.debug("Reset parameters with seed %d", seed)
    return ParameterSet(seed=seed)
