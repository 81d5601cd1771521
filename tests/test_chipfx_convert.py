from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from chipfx.audio import RenderedWaveform
from chipfx.convert import ExportFormat, convert


def _tone(frames: int = 1000, rate: int = 44_100) -> RenderedWaveform:
    t = np.arange(frames, dtype=np.float32) / rate
    samples = 0.5 * np.sin(2.0 * np.pi * 440.0 * t)
    return RenderedWaveform(samples=samples, sample_rate=rate, bit_depth=32)


def test_export_format_defaults() -> None:
    fmt = ExportFormat()
    assert (fmt.sample_rate, fmt.bit_depth, fmt.channels) == (44_100, 16, 1)


def test_unsupported_values_fall_back(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="chipfx.convert")
    fmt = ExportFormat(sample_rate=48_000, bit_depth=24, channels=6)
    assert (fmt.sample_rate, fmt.bit_depth, fmt.channels) == (44_100, 16, 1)
    assert "Sample rate 48000 not supported" in caplog.text
    assert "Sample size 24 not supported" in caplog.text
    assert "Channel count 6 not supported" in caplog.text


def test_partial_fallback_keeps_valid_fields() -> None:
    fmt = ExportFormat(sample_rate=22_050, bit_depth=12, channels=2)
    assert (fmt.sample_rate, fmt.bit_depth, fmt.channels) == (22_050, 16, 2)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("22050,8,2", (22_050, 8, 2)),
        ("44100, 32, 1", (44_100, 32, 1)),
        ("22050 16 1", (22_050, 16, 1)),
        ("44100,16", (44_100, 16, 1)),
        ("a,b,c", (44_100, 16, 1)),
        ("", (44_100, 16, 1)),
    ],
)
def test_parse(text: str, expected: tuple[int, int, int]) -> None:
    fmt = ExportFormat.parse(text)
    assert (fmt.sample_rate, fmt.bit_depth, fmt.channels) == expected


def test_downsample_halves_frame_count() -> None:
    source = _tone(1001)
    converted = convert(source, sample_rate=22_050, bit_depth=32)
    assert converted.sample_rate == 22_050
    assert converted.sample_count == math.ceil(1001 / 2)
    assert float(np.abs(converted.samples).max()) <= 1.0


def test_upsample_doubles_frame_count() -> None:
    source = _tone(500, rate=22_050)
    converted = convert(source, sample_rate=44_100, bit_depth=32)
    assert converted.sample_count == 1000


def test_bit_depth_dtypes() -> None:
    source = _tone()
    assert convert(source, bit_depth=8).samples.dtype == np.uint8
    assert convert(source, bit_depth=16).samples.dtype == np.int16
    assert convert(source, bit_depth=32).samples.dtype == np.float32


def test_eight_bit_silence_is_centered() -> None:
    silent = RenderedWaveform(samples=np.zeros(16, dtype=np.float32))
    converted = convert(silent, bit_depth=8)
    assert np.all(converted.samples == 128)


def test_sixteen_bit_keeps_precision() -> None:
    source = _tone()
    converted = convert(source, ExportFormat(bit_depth=16))
    assert np.allclose(converted.to_float(), source.samples, atol=1.0 / 32767 + 1e-6)


def test_stereo_duplicates_mono() -> None:
    source = _tone(300)
    converted = convert(source, channels=2)
    assert converted.samples.shape == (300, 2)
    assert np.array_equal(converted.samples[:, 0], converted.samples[:, 1])


def test_stereo_to_mono_averages() -> None:
    left = np.full(10, 0.5, dtype=np.float32)
    right = np.full(10, -0.25, dtype=np.float32)
    stereo = RenderedWaveform(samples=np.stack([left, right], axis=1), channels=2)
    mono = convert(stereo, channels=1, bit_depth=32)
    assert mono.samples.shape == (10,)
    assert np.allclose(mono.samples, 0.125)


def test_convert_leaves_source_untouched() -> None:
    source = _tone()
    before = source.samples.copy()
    converted = convert(source, ExportFormat(sample_rate=22_050, bit_depth=8, channels=2))
    assert converted is not source
    assert np.array_equal(source.samples, before)
    assert source.bit_depth == 32


def test_empty_waveform_converts() -> None:
    empty = RenderedWaveform(samples=np.zeros(0, dtype=np.float32))
    converted = convert(empty, ExportFormat(sample_rate=22_050, channels=2))
    assert converted.sample_count == 0
