from __future__ import annotations

import logging
from math import gcd

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator
from scipy.signal import resample_poly  # type: ignore[import]

from .audio import FloatArray, RenderedWaveform, quantize

_LOGGER = logging.getLogger("chipfx.convert")

SUPPORTED_SAMPLE_RATES: tuple[int, ...] = (22_050, 44_100)
SUPPORTED_BIT_DEPTHS: tuple[int, ...] = (8, 16, 32)
SUPPORTED_CHANNELS: tuple[int, ...] = (1, 2)

DEFAULT_SAMPLE_RATE = 44_100
DEFAULT_BIT_DEPTH = 16
DEFAULT_CHANNELS = 1


class ExportFormat(BaseModel):
    """Target format for export or playback handoff.

    Unsupported values never fail: they fall back to the defaults
    (44100 Hz, 16 bit, mono) and a warning is logged.
    """

    sample_rate: int = DEFAULT_SAMPLE_RATE
    bit_depth: int = DEFAULT_BIT_DEPTH
    channels: int = DEFAULT_CHANNELS

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("sample_rate")
    @classmethod
    def _check_sample_rate(cls, value: int) -> int:
        if value not in SUPPORTED_SAMPLE_RATES:
            _LOGGER.warning(
                "Sample rate %s not supported, using %d Hz", value, DEFAULT_SAMPLE_RATE
            )
            return DEFAULT_SAMPLE_RATE
        return value

    @field_validator("bit_depth")
    @classmethod
    def _check_bit_depth(cls, value: int) -> int:
        if value not in SUPPORTED_BIT_DEPTHS:
            _LOGGER.warning("Sample size %s not supported, using %d bit", value, DEFAULT_BIT_DEPTH)
            return DEFAULT_BIT_DEPTH
        return value

    @field_validator("channels")
    @classmethod
    def _check_channels(cls, value: int) -> int:
        if value not in SUPPORTED_CHANNELS:
            _LOGGER.warning("Channel count %s not supported, using mono", value)
            return DEFAULT_CHANNELS
        return value

    @classmethod
    def parse(cls, text: str) -> "ExportFormat":
        """Parse ``"rate,bits,channels"``; malformed text yields the defaults."""
        parts = [part.strip() for part in text.replace(" ", ",").split(",") if part.strip()]
        if len(parts) != 3:
            _LOGGER.warning("Incorrect number of format values in %r, using defaults", text)
            return cls()
        try:
            rate, bits, channels = (int(part) for part in parts)
        except ValueError:
            _LOGGER.warning("Format values in %r are not integers, using defaults", text)
            return cls()
        return cls(sample_rate=rate, bit_depth=bits, channels=channels)


def _resample(data: FloatArray, source_rate: int, target_rate: int) -> FloatArray:
    if source_rate == target_rate or data.shape[0] == 0:
        return data
    divisor = gcd(source_rate, target_rate)
    up = target_rate // divisor
    down = source_rate // divisor
    resampled = resample_poly(data, up, down, axis=0)
    return np.clip(resampled, -1.0, 1.0).astype(np.float32)


def _match_channels(data: FloatArray, channels: int) -> FloatArray:
    if data.ndim == 1:
        mono = data
    elif data.shape[1] == channels:
        return data
    else:
        mono = data.mean(axis=1).astype(np.float32)
    if channels == 1:
        return mono
    return np.repeat(mono[:, np.newaxis], channels, axis=1)


def convert(
    waveform: RenderedWaveform,
    fmt: ExportFormat | None = None,
    *,
    sample_rate: int | None = None,
    bit_depth: int | None = None,
    channels: int | None = None,
) -> RenderedWaveform:
    """Return a new waveform resampled, remixed and requantized to ``fmt``.

    Keyword arguments override the matching fields of ``fmt``.
    """

    base = fmt or ExportFormat()
    target = ExportFormat(
        sample_rate=base.sample_rate if sample_rate is None else sample_rate,
        bit_depth=base.bit_depth if bit_depth is None else bit_depth,
        channels=base.channels if channels is None else channels,
    )

    data = waveform.to_float()
    data = _resample(data, waveform.sample_rate, target.sample_rate)
    data = _match_channels(data, target.channels)
    samples = quantize(data, target.bit_depth)

    _LOGGER.debug(
        "Converted %d frames @ %d Hz/%d bit/%d ch to %d frames @ %d Hz/%d bit/%d ch",
        waveform.sample_count,
        waveform.sample_rate,
        waveform.bit_depth,
        waveform.channels,
        samples.shape[0],
        target.sample_rate,
        target.bit_depth,
        target.channels,
    )
    return RenderedWaveform(
        samples=samples,
        sample_rate=target.sample_rate,
        bit_depth=target.bit_depth,
        channels=target.channels,
    )
