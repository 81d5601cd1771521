"""
Synthesis engine.

One pass over the output buffer; every output sample averages eight
sub-samples that run through:

1. Frequency: period, slide, arpeggio, vibrato, repeat
2. Oscillator: square / sawtooth / sine / noise
3. Filters: one-pole low-pass then high-pass
4. Phaser: 1024-entry delay line
5. Envelope: attack / sustain (+punch) / decay
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, TypeAlias

import numpy as np

from .audio import BIT_DEPTH, SAMPLE_RATE, RenderedWaveform
from .errors import RenderError
from .params import FLOAT_FIELDS, ParameterSet, WaveShape
from .rng import NOISE_TABLE_SIZE, RandomSource

_LOGGER = logging.getLogger("chipfx.synth")

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_DURATION_SECONDS = 10.0
SUPERSAMPLING = 8
SAMPLE_SCALE = 0.2
MIN_PERIOD = 8
PHASER_BUFFER_SIZE = 1024
_PHASER_MASK = PHASER_BUFFER_SIZE - 1
ENVELOPE_SCALE = 100_000.0
ATTACK, SUSTAIN, DECAY, FINISHED = 0, 1, 2, 3

LPF_MAX_CUTOFF = 0.1
LPF_MAX_DAMPING = 0.8
HPF_MIN_CUTOFF = 0.00001
HPF_MAX_CUTOFF = 0.1

# Inputs are clipped to this magnitude so powers of them stay finite.
_MAX_MAGNITUDE = 1.0e6
_TWO_PI = 2.0 * math.pi


@dataclass(frozen=True, slots=True)
class EngineSnapshot:
    """Working state after one output sample, for observers."""

    index: int
    period: int
    square_duty: float
    lpf_cutoff: float
    lpf_damping: float
    hpf_cutoff: float
    phaser_delay: int
    envelope_stage: int
    envelope_volume: float
    sample: float


Observer: TypeAlias = Callable[[EngineSnapshot], None]


@dataclass(frozen=True, slots=True)
class _FrequencyReset:
    period: float
    max_period: float
    slide: float
    delta_slide: float
    square_duty: float
    square_slide: float
    arpeggio_modulation: float
    arpeggio_limit: int


def _sane(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(max(value, -_MAX_MAGNITUDE), _MAX_MAGNITUDE)


def _sanitize(params: ParameterSet) -> ParameterSet:
    """Replace non-finite or absurd values and apply the render-time invariants."""
    values = {name: getattr(params, name) for name in FLOAT_FIELDS}
    fixed = {name: _sane(value) for name, value in values.items()}
    dirty = [name for name in FLOAT_FIELDS if fixed[name] != values[name]]
    if dirty:
        _LOGGER.warning("Clamped out-of-range parameters before render: %s", ", ".join(dirty))

    if fixed["min_frequency"] > fixed["start_frequency"]:
        fixed["min_frequency"] = fixed["start_frequency"]
    if fixed["slide"] < fixed["delta_slide"]:
        fixed["slide"] = fixed["delta_slide"]
    return params.evolve(**fixed)


def _frequency_reset(params: ParameterSet) -> _FrequencyReset:
    start = params.start_frequency
    minimum = params.min_frequency
    if params.change_amount >= 0.0:
        modulation = 1.0 - params.change_amount**2 * 0.9
    else:
        modulation = 1.0 + params.change_amount**2 * 10.0

    arpeggio_limit = int((1.0 - params.change_speed) ** 2 * 20000 + 32)
    if params.change_speed == 1.0:
        arpeggio_limit = 0

    return _FrequencyReset(
        period=100.0 / (start * start + 0.001),
        max_period=100.0 / (minimum * minimum + 0.001),
        slide=1.0 - params.slide**3 * 0.01,
        delta_slide=-(params.delta_slide**3) * 0.000001,
        square_duty=0.5 - params.square_duty * 0.5,
        square_slide=-params.duty_sweep * 0.00005,
        arpeggio_modulation=modulation,
        arpeggio_limit=arpeggio_limit,
    )


def _repeat_limit(repeat_speed: float) -> int:
    if repeat_speed == 0.0:
        return 0
    return int((1.0 - repeat_speed) ** 2 * 20000 + 32)


def _envelope_lengths(params: ParameterSet) -> tuple[int, int, int]:
    return (
        int(params.attack_time * params.attack_time * ENVELOPE_SCALE),
        int(params.sustain_time * params.sustain_time * ENVELOPE_SCALE),
        int(params.decay_time * params.decay_time * ENVELOPE_SCALE),
    )


def _stage_fraction(time: int, length: int) -> float:
    # Zero-length stages count as already complete.
    return time / length if length > 0 else 1.0


def _signed_square(value: float, scale: float) -> float:
    result = value * value * scale
    return -result if value < 0.0 else result


def render(
    params: ParameterSet,
    rng: RandomSource | None = None,
    *,
    max_duration_seconds: float = MAX_DURATION_SECONDS,
    sample_rate: int = SAMPLE_RATE,
    observer: Observer | None = None,
) -> RenderedWaveform:
    """Render ``params`` into a mono float32 waveform.

    The shared stream is reseeded from ``params.seed`` when it is non-zero, so
    noise output is reproducible. Rendering stops when the envelope finishes,
    when the period reaches the ``min_frequency`` floor, or at
    ``max_duration_seconds``; the buffer holds exactly the samples produced.
    """

    if rng is None:
        rng = RandomSource()
    if params.seed != 0:
        rng.seed(params.seed)

    p = _sanitize(params)
    max_samples = max(0, int(max_duration_seconds * sample_rate))

    try:
        buffer = np.zeros(max_samples, dtype=np.float32)
    except MemoryError as exc:
        raise RenderError(f"Could not allocate {max_samples} samples for render") from exc

    # Frequency state
    freq = _frequency_reset(p)
    fperiod = freq.period
    fmaxperiod = freq.max_period
    fslide = freq.slide
    fdslide = freq.delta_slide
    square_duty = freq.square_duty
    square_slide = freq.square_slide
    arpeggio_modulation = freq.arpeggio_modulation
    arpeggio_limit = freq.arpeggio_limit
    arpeggio_time = 0
    repeat_limit = _repeat_limit(p.repeat_speed)
    repeat_time = 0
    stop_at_floor = p.min_frequency > 0.0

    # Vibrato
    vibrato_phase = 0.0
    vibrato_speed = p.vibrato_speed**2 * 0.01
    vibrato_amplitude = p.vibrato_depth * 0.5

    # Envelope
    envelope_length = _envelope_lengths(p)
    envelope_stage = ATTACK
    envelope_time = 0
    envelope_volume = 0.0
    punch = p.sustain_punch

    # Filters
    lpf_enabled = p.lpf_cutoff != 1.0
    fltp = 0.0
    fltdp = 0.0
    fltw = p.lpf_cutoff**3 * 0.1
    fltwd = 1.0 + p.lpf_cutoff_sweep * 0.0001
    fltdmp = min(5.0 / (1.0 + p.lpf_resonance**2 * 20.0) * (0.01 + fltw), LPF_MAX_DAMPING)
    fltphp = 0.0
    flthp = p.hpf_cutoff**2 * 0.1
    flthpd = 1.0 + p.hpf_cutoff_sweep * 0.0003

    # Phaser
    fphase = _signed_square(p.phaser_offset, 1020.0)
    fdphase = _signed_square(p.phaser_sweep, 1.0)
    iphase = min(abs(int(fphase)), _PHASER_MASK)
    phaser_buffer = [0.0] * PHASER_BUFFER_SIZE
    ipp = 0

    # Oscillator
    shape = int(p.wave_shape)
    is_noise = shape == WaveShape.NOISE
    noise_buffer = rng.noise_table(NOISE_TABLE_SIZE)
    phase = 0
    period = max(int(fperiod), MIN_PERIOD)

    produced = 0
    reason = "time limit"
    for i in range(max_samples):
        generating = True

        repeat_time += 1
        if repeat_limit != 0 and repeat_time >= repeat_limit:
            repeat_time = 0
            freq = _frequency_reset(p)
            fperiod = freq.period
            fmaxperiod = freq.max_period
            fslide = freq.slide
            fdslide = freq.delta_slide
            square_duty = freq.square_duty
            square_slide = freq.square_slide
            arpeggio_modulation = freq.arpeggio_modulation
            arpeggio_limit = freq.arpeggio_limit
            arpeggio_time = 0

        # Frequency slide / arpeggio
        arpeggio_time += 1
        if arpeggio_limit != 0 and arpeggio_time >= arpeggio_limit:
            arpeggio_limit = 0
            fperiod *= arpeggio_modulation

        fslide += fdslide
        fperiod *= fslide
        if fperiod > fmaxperiod:
            fperiod = fmaxperiod
            if stop_at_floor:
                generating = False
                reason = "frequency floor"

        rfperiod = fperiod
        if vibrato_amplitude > 0.0:
            vibrato_phase += vibrato_speed
            rfperiod = fperiod * (1.0 + math.sin(vibrato_phase) * vibrato_amplitude)

        period = max(int(rfperiod), MIN_PERIOD)

        square_duty = min(max(square_duty + square_slide, 0.0), 0.5)

        # Volume envelope
        envelope_time += 1
        if envelope_time > envelope_length[envelope_stage]:
            envelope_time = 0
            envelope_stage += 1
            if envelope_stage == FINISHED:
                generating = False
                reason = "envelope end"

        if envelope_stage == ATTACK:
            envelope_volume = _stage_fraction(envelope_time, envelope_length[ATTACK])
        elif envelope_stage == SUSTAIN:
            fraction = _stage_fraction(envelope_time, envelope_length[SUSTAIN])
            envelope_volume = 1.0 + (1.0 - fraction) * 2.0 * punch
        elif envelope_stage == DECAY:
            envelope_volume = 1.0 - _stage_fraction(envelope_time, envelope_length[DECAY])

        # Phaser step
        fphase += fdphase
        iphase = min(abs(int(fphase)), _PHASER_MASK)

        if flthpd != 0.0:
            flthp *= flthpd
        flthp = min(max(flthp, HPF_MIN_CUTOFF), HPF_MAX_CUTOFF)

        total = 0.0
        for _ in range(SUPERSAMPLING):
            phase += 1
            if phase >= period:
                phase %= period
                if is_noise:
                    noise_buffer = rng.noise_table(NOISE_TABLE_SIZE)

            fp = phase / period
            if shape == WaveShape.SQUARE:
                sample = 0.5 if fp < square_duty else -0.5
            elif shape == WaveShape.SAWTOOTH:
                sample = 1.0 - fp * 2.0
            elif shape == WaveShape.SINE:
                sample = math.sin(fp * _TWO_PI)
            else:
                sample = noise_buffer[phase * NOISE_TABLE_SIZE // period]

            # Low-pass filter
            pp = fltp
            fltw = min(max(fltw * fltwd, 0.0), LPF_MAX_CUTOFF)
            if lpf_enabled:
                fltdp += (sample - fltp) * fltw
                fltdp -= fltdp * fltdmp
            else:
                fltp = sample
                fltdp = 0.0
            fltp += fltdp

            # High-pass filter
            fltphp += fltp - pp
            fltphp -= fltphp * flthp
            sample = fltphp

            # Phaser
            phaser_buffer[ipp & _PHASER_MASK] = sample
            sample += phaser_buffer[(ipp - iphase + PHASER_BUFFER_SIZE) & _PHASER_MASK]
            ipp = (ipp + 1) & _PHASER_MASK

            total += sample * envelope_volume

        ssample = min(max(total / SUPERSAMPLING * SAMPLE_SCALE, -1.0), 1.0)
        buffer[i] = ssample
        produced = i + 1

        if observer is not None:
            observer(
                EngineSnapshot(
                    index=i,
                    period=period,
                    square_duty=square_duty,
                    lpf_cutoff=fltw,
                    lpf_damping=fltdmp,
                    hpf_cutoff=flthp,
                    phaser_delay=iphase,
                    envelope_stage=envelope_stage,
                    envelope_volume=envelope_volume,
                    sample=float(buffer[i]),
                )
            )

        if not generating:
            break

    _LOGGER.debug(
        "Rendered %d samples (%.3fs) with %s wave, stopped by %s",
        produced,
        produced / sample_rate if sample_rate > 0 else 0.0,
        WaveShape(shape).name.lower(),
        reason,
    )
    return RenderedWaveform(
        samples=buffer[:produced],
        sample_rate=sample_rate,
        bit_depth=BIT_DEPTH,
        channels=1,
    )
