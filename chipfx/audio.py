from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Any, TypeAlias

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, model_validator

from .errors import ExportError

_LOGGER = logging.getLogger("chipfx.audio")

FloatArray: TypeAlias = NDArray[np.float32]
SampleArray: TypeAlias = NDArray[Any]
AudioNumbers: TypeAlias = NDArray[np.floating[Any]] | Sequence[float] | FloatArray

SAMPLE_RATE = 44_100
BIT_DEPTH = 32

SAMPLE_DTYPES: Mapping[int, type[np.generic]] = MappingProxyType(
    {8: np.uint8, 16: np.int16, 32: np.float32}
)
_WAV_SUBTYPES: Mapping[int, str] = MappingProxyType({8: "PCM_U8", 16: "PCM_16", 32: "FLOAT"})

# 8-bit PCM is unsigned with silence at 128.
_U8_CENTER = 128
_U8_SCALE = 127.0
_I16_SCALE = 32767.0


def ensure_audio_contract(audio: AudioNumbers) -> FloatArray:
    """Normalize dtype/range/shape to a mono float32 buffer with peak <= 1."""

    mono: FloatArray = np.asarray(audio, dtype=np.float32).reshape(-1)
    if mono.size == 0:
        return mono
    peak = float(np.max(np.abs(mono)))
    if peak > 1.0:
        mono = mono / peak
    return mono


def quantize(samples: NDArray[np.floating[Any]], bit_depth: int) -> SampleArray:
    """Map float samples in [-1, 1] to the storage type of ``bit_depth``."""
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    match bit_depth:
        case 8:
            return (np.round(clipped * _U8_SCALE) + _U8_CENTER).astype(np.uint8)
        case 16:
            return np.round(clipped * _I16_SCALE).astype(np.int16)
        case 32:
            return clipped.astype(np.float32)
        case _:
            raise ValueError(f"Unsupported bit depth: {bit_depth}")


def dequantize(samples: SampleArray, bit_depth: int) -> FloatArray:
    data = np.asarray(samples)
    match bit_depth:
        case 8:
            out = (data.astype(np.float32) - _U8_CENTER) / _U8_SCALE
        case 16:
            out = data.astype(np.float32) / _I16_SCALE
        case 32:
            out = data.astype(np.float32)
        case _:
            raise ValueError(f"Unsupported bit depth: {bit_depth}")
    return np.clip(out, -1.0, 1.0).astype(np.float32)


class RenderedWaveform(BaseModel):
    """A finished, read-only sample buffer.

    Mono buffers have shape ``(frames,)``; multi-channel buffers are
    interleaved as ``(frames, channels)``. The dtype follows ``bit_depth``.
    """

    samples: SampleArray
    sample_rate: int = SAMPLE_RATE
    bit_depth: int = BIT_DEPTH
    channels: int = 1

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    @model_validator(mode="after")
    def _freeze_samples(self) -> "RenderedWaveform":
        if self.bit_depth not in SAMPLE_DTYPES:
            raise ValueError(f"Unsupported bit depth: {self.bit_depth}")
        if self.channels < 1:
            raise ValueError("channels must be >= 1")
        array = np.array(self.samples, dtype=SAMPLE_DTYPES[self.bit_depth], copy=True)
        if self.channels == 1:
            array = array.reshape(-1)
        else:
            array = array.reshape(-1, self.channels)
        array.flags.writeable = False
        object.__setattr__(self, "samples", array)
        return self

    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.sample_count / self.sample_rate if self.sample_rate > 0 else 0.0

    def to_float(self) -> FloatArray:
        return dequantize(self.samples, self.bit_depth)

    def save(self, path: str | Path) -> Path:
        return write_wav(path, self)


def write_wav(
    path: str | Path,
    audio: RenderedWaveform | AudioNumbers,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write a waveform (or bare float samples) to a wav file."""

    target = Path(path)
    match audio:
        case RenderedWaveform():
            data = audio.to_float()
            rate = audio.sample_rate
            subtype = _WAV_SUBTYPES[audio.bit_depth]
        case str() | bytes():
            raise ExportError("audio must be a waveform or audio samples")
        case _:
            data = ensure_audio_contract(audio)
            rate = sample_rate
            subtype = _WAV_SUBTYPES[BIT_DEPTH]

    try:
        sf.write(target, data, rate, subtype=subtype)
    except (OSError, RuntimeError) as exc:
        raise ExportError(f"Failed to write wav file {target}: {exc}") from exc

    _LOGGER.info("Wrote %s (%d Hz, %s)", target, rate, subtype)
    return target


def read_wav(path: str | Path) -> RenderedWaveform:
    """Read a wav file as a float32 waveform."""

    source = Path(path)
    try:
        data, rate = sf.read(source, dtype="float32", always_2d=False)
    except (OSError, RuntimeError) as exc:
        raise ExportError(f"Failed to read wav file {source}: {exc}") from exc
    channels = 1 if data.ndim == 1 else int(data.shape[1])
    return RenderedWaveform(
        samples=data, sample_rate=int(rate), bit_depth=BIT_DEPTH, channels=channels
    )


def _code_name(path: Path, name: str | None) -> str:
    raw = name if name else path.stem
    cleaned = re.sub(r"[^0-9A-Za-z_]", "_", raw).upper()
    if not cleaned or cleaned[0].isdigit():
        cleaned = f"WAVE_{cleaned}"
    return cleaned


def export_as_code(
    path: str | Path,
    waveform: RenderedWaveform,
    *,
    name: str | None = None,
    bytes_per_line: int = 20,
) -> Path:
    """Write the raw little-endian sample data as a C header byte array."""

    target = Path(path)
    symbol = _code_name(target, name)
    dtype = np.dtype(SAMPLE_DTYPES[waveform.bit_depth]).newbyteorder("<")
    payload = np.ascontiguousarray(waveform.samples, dtype=dtype).tobytes()

    lines = [
        "// Wave data information",
        f"#define {symbol}_SAMPLE_COUNT     {waveform.sample_count * waveform.channels}",
        f"#define {symbol}_SAMPLE_RATE      {waveform.sample_rate}",
        f"#define {symbol}_SAMPLE_SIZE      {waveform.bit_depth}",
        f"#define {symbol}_CHANNELS         {waveform.channels}",
        "",
        f"static unsigned char {symbol}_DATA[{len(payload)}] = {{",
    ]
    for offset in range(0, len(payload), bytes_per_line):
        chunk = payload[offset : offset + bytes_per_line]
        lines.append("    " + ", ".join(f"0x{byte:02x}" for byte in chunk) + ",")
    lines.append("};")
    lines.append("")

    try:
        target.write_text("\n".join(lines), encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"Failed to write code file {target}: {exc}") from exc

    _LOGGER.info("Wrote %s (%d bytes of sample data)", target, len(payload))
    return target
