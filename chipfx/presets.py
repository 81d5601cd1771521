"""Preset generators, randomizer and mutator.

Every generator draws from the shared :class:`~chipfx.rng.RandomSource` and
returns a :class:`PresetResult` flagged for re-rendering. Generators start from
:func:`~chipfx.params.reset`, which reseeds the stream, so a preset is fully
determined by the seed it draws.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable, TypeAlias

from pydantic import BaseModel, ConfigDict

from .errors import InvalidParamsError
from .params import ParameterSet, WaveShape, reset
from .rng import RandomSource

_LOGGER = logging.getLogger("chipfx.presets")

MUTATION_AMOUNT = 0.05

MUTABLE_FIELDS: tuple[str, ...] = (
    "start_frequency",
    "slide",
    "delta_slide",
    "square_duty",
    "duty_sweep",
    "vibrato_depth",
    "vibrato_speed",
    "attack_time",
    "sustain_time",
    "decay_time",
    "sustain_punch",
    "lpf_resonance",
    "lpf_cutoff",
    "lpf_cutoff_sweep",
    "hpf_cutoff",
    "hpf_cutoff_sweep",
    "phaser_offset",
    "phaser_sweep",
    "repeat_speed",
    "change_speed",
    "change_amount",
)


class PresetResult(BaseModel):
    params: ParameterSet
    regenerate: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid")


PresetFn: TypeAlias = Callable[[RandomSource], PresetResult]


def _finish(values: Mapping[str, Any]) -> PresetResult:
    return PresetResult(params=ParameterSet.model_validate(values))


def _one_in(rng: RandomSource, n: int) -> bool:
    return rng.value(0, n - 1) == 0


def pickup_coin(rng: RandomSource) -> PresetResult:
    p = reset(rng).model_dump()
    p["start_frequency"] = 0.4 + rng.frnd(0.5)
    p["attack_time"] = 0.0
    p["sustain_time"] = rng.frnd(0.1)
    p["decay_time"] = 0.1 + rng.frnd(0.4)
    p["sustain_punch"] = 0.3 + rng.frnd(0.3)

    if rng.coin():
        p["change_speed"] = 0.5 + rng.frnd(0.2)
        p["change_amount"] = 0.2 + rng.frnd(0.4)

    return _finish(p)


def laser_shoot(rng: RandomSource) -> PresetResult:
    p = reset(rng).model_dump()
    shape = rng.value(0, 2)
    if shape == WaveShape.SINE and rng.coin():
        shape = rng.value(0, 1)
    p["wave_shape"] = shape

    p["start_frequency"] = 0.5 + rng.frnd(0.5)
    p["min_frequency"] = max(p["start_frequency"] - 0.2 - rng.frnd(0.6), 0.2)
    p["slide"] = -0.15 - rng.frnd(0.2)

    if _one_in(rng, 3):
        p["start_frequency"] = 0.3 + rng.frnd(0.6)
        p["min_frequency"] = rng.frnd(0.1)
        p["slide"] = -0.35 - rng.frnd(0.3)

    if rng.coin():
        p["square_duty"] = rng.frnd(0.5)
        p["duty_sweep"] = rng.frnd(0.2)
    else:
        p["square_duty"] = 0.4 + rng.frnd(0.5)
        p["duty_sweep"] = -rng.frnd(0.7)

    p["attack_time"] = 0.0
    p["sustain_time"] = 0.1 + rng.frnd(0.2)
    p["decay_time"] = rng.frnd(0.4)

    if rng.coin():
        p["sustain_punch"] = rng.frnd(0.3)

    if _one_in(rng, 3):
        p["phaser_offset"] = rng.frnd(0.2)
        p["phaser_sweep"] = -rng.frnd(0.2)

    if rng.coin():
        p["hpf_cutoff"] = rng.frnd(0.3)

    return _finish(p)


def explosion(rng: RandomSource) -> PresetResult:
    p = reset(rng).model_dump()
    p["wave_shape"] = WaveShape.NOISE

    if rng.coin():
        p["start_frequency"] = 0.1 + rng.frnd(0.4)
        p["slide"] = -0.1 + rng.frnd(0.4)
    else:
        p["start_frequency"] = 0.2 + rng.frnd(0.7)
        p["slide"] = -0.2 - rng.frnd(0.2)

    p["start_frequency"] *= p["start_frequency"]

    if _one_in(rng, 5):
        p["slide"] = 0.0
    if _one_in(rng, 3):
        p["repeat_speed"] = 0.3 + rng.frnd(0.5)

    p["attack_time"] = 0.0
    p["sustain_time"] = 0.1 + rng.frnd(0.3)
    p["decay_time"] = rng.frnd(0.5)

    if not rng.coin():
        p["phaser_offset"] = -0.3 + rng.frnd(0.9)
        p["phaser_sweep"] = -rng.frnd(0.3)

    p["sustain_punch"] = 0.2 + rng.frnd(0.6)

    if rng.coin():
        p["vibrato_depth"] = rng.frnd(0.7)
        p["vibrato_speed"] = rng.frnd(0.6)

    if _one_in(rng, 3):
        p["change_speed"] = 0.6 + rng.frnd(0.3)
        p["change_amount"] = 0.8 - rng.frnd(1.6)

    return _finish(p)


def powerup(rng: RandomSource) -> PresetResult:
    p = reset(rng).model_dump()
    if rng.coin():
        p["wave_shape"] = WaveShape.SAWTOOTH
    else:
        p["square_duty"] = rng.frnd(0.6)

    if rng.coin():
        p["start_frequency"] = 0.2 + rng.frnd(0.3)
        p["slide"] = 0.1 + rng.frnd(0.4)
        p["repeat_speed"] = 0.4 + rng.frnd(0.4)
    else:
        p["start_frequency"] = 0.2 + rng.frnd(0.3)
        p["slide"] = 0.05 + rng.frnd(0.2)
        if rng.coin():
            p["vibrato_depth"] = rng.frnd(0.7)
            p["vibrato_speed"] = rng.frnd(0.6)

    p["attack_time"] = 0.0
    p["sustain_time"] = rng.frnd(0.4)
    p["decay_time"] = 0.1 + rng.frnd(0.4)

    return _finish(p)


def hit_hurt(rng: RandomSource) -> PresetResult:
    p = reset(rng).model_dump()
    shape = rng.value(0, 2)
    if shape == WaveShape.SINE:
        shape = WaveShape.NOISE
    p["wave_shape"] = shape
    if shape == WaveShape.SQUARE:
        p["square_duty"] = rng.frnd(0.6)

    p["start_frequency"] = 0.2 + rng.frnd(0.6)
    p["slide"] = -0.3 - rng.frnd(0.4)
    p["attack_time"] = 0.0
    p["sustain_time"] = rng.frnd(0.1)
    p["decay_time"] = 0.1 + rng.frnd(0.2)

    if rng.coin():
        p["hpf_cutoff"] = rng.frnd(0.3)

    return _finish(p)


def jump(rng: RandomSource) -> PresetResult:
    p = reset(rng).model_dump()
    p["wave_shape"] = WaveShape.SQUARE
    p["square_duty"] = rng.frnd(0.6)
    p["start_frequency"] = 0.3 + rng.frnd(0.3)
    p["slide"] = 0.1 + rng.frnd(0.2)
    p["attack_time"] = 0.0
    p["sustain_time"] = 0.1 + rng.frnd(0.3)
    p["decay_time"] = 0.1 + rng.frnd(0.2)

    if rng.coin():
        p["hpf_cutoff"] = rng.frnd(0.3)
    if rng.coin():
        p["lpf_cutoff"] = 1.0 - rng.frnd(0.6)

    return _finish(p)


def blip_select(rng: RandomSource) -> PresetResult:
    p = reset(rng).model_dump()
    shape = rng.value(0, 1)
    p["wave_shape"] = shape
    if shape == WaveShape.SQUARE:
        p["square_duty"] = rng.frnd(0.6)
    p["start_frequency"] = 0.2 + rng.frnd(0.4)
    p["attack_time"] = 0.0
    p["sustain_time"] = 0.1 + rng.frnd(0.1)
    p["decay_time"] = rng.frnd(0.2)
    p["hpf_cutoff"] = 0.1

    return _finish(p)


def _signed(rng: RandomSource) -> float:
    return rng.frnd(2.0) - 1.0


def randomize(rng: RandomSource) -> PresetResult:
    """Draw every field from a shaped distribution.

    Odd powers keep the sign and pull values towards zero; a few corrective
    rules then steer away from sounds that would be inaudible.
    """
    p: dict[str, Any] = {"seed": rng.random_seed(), "wave_shape": rng.value(0, 3)}

    p["start_frequency"] = _signed(rng) ** 2
    if rng.coin():
        p["start_frequency"] = _signed(rng) ** 3 + 0.5
    p["min_frequency"] = 0.0
    p["slide"] = _signed(rng) ** 5

    if p["start_frequency"] > 0.7 and p["slide"] > 0.2:
        p["slide"] = -p["slide"]
    if p["start_frequency"] < 0.2 and p["slide"] < -0.05:
        p["slide"] = -p["slide"]

    p["delta_slide"] = _signed(rng) ** 3
    p["square_duty"] = _signed(rng)
    p["duty_sweep"] = _signed(rng) ** 3
    p["vibrato_depth"] = _signed(rng) ** 3
    p["vibrato_speed"] = _signed(rng)
    p["attack_time"] = _signed(rng) ** 3
    p["sustain_time"] = _signed(rng) ** 2
    p["decay_time"] = _signed(rng)
    p["sustain_punch"] = rng.frnd(0.8) ** 2

    if p["attack_time"] + p["sustain_time"] + p["decay_time"] < 0.2:
        p["sustain_time"] += 0.2 + rng.frnd(0.3)
        p["decay_time"] += 0.2 + rng.frnd(0.3)

    p["lpf_resonance"] = _signed(rng)
    p["lpf_cutoff"] = 1.0 - rng.frnd(1.0) ** 3
    p["lpf_cutoff_sweep"] = _signed(rng) ** 3

    if p["lpf_cutoff"] < 0.1 and p["lpf_cutoff_sweep"] < -0.05:
        p["lpf_cutoff_sweep"] = -p["lpf_cutoff_sweep"]

    p["hpf_cutoff"] = rng.frnd(1.0) ** 5
    p["hpf_cutoff_sweep"] = _signed(rng) ** 5
    p["phaser_offset"] = _signed(rng) ** 3
    p["phaser_sweep"] = _signed(rng) ** 3
    p["repeat_speed"] = _signed(rng)
    p["change_speed"] = _signed(rng)
    p["change_amount"] = _signed(rng)

    return _finish(p)


def mutate(params: ParameterSet, rng: RandomSource) -> PresetResult:
    """Nudge roughly half of the tunable fields by a small additive amount."""
    changes: dict[str, float] = {}
    for name in MUTABLE_FIELDS:
        if rng.coin():
            changes[name] = getattr(params, name) + rng.jitter(MUTATION_AMOUNT)
    _LOGGER.debug("Mutated %d fields", len(changes))
    return PresetResult(params=params.evolve(**changes))


PRESETS: Mapping[str, PresetFn] = MappingProxyType(
    {
        "pickup": pickup_coin,
        "laser": laser_shoot,
        "explosion": explosion,
        "powerup": powerup,
        "hit": hit_hurt,
        "jump": jump,
        "blip": blip_select,
        "random": randomize,
    }
)


def generate(name: str, rng: RandomSource) -> PresetResult:
    try:
        preset = PRESETS[name]
    except KeyError as exc:
        raise InvalidParamsError(f"Unknown preset: {name!r}. Valid: {list(PRESETS)}") from exc
    _LOGGER.debug("Generating preset %s", name)
    return preset(rng)
