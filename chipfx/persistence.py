"""Binary parameter files.

``.rfx`` layout (little-endian)::

    offset  size  field
    0       4     signature "rFX "
    4       4     int32 format version (120)
    8       96    record: int32 seed, int32 wave shape, 22 x float32

``.sfs`` is the sfxr format (versions 100, 101, 102), read for compatibility.
Loading never raises: a bad file yields default parameters, ``ok=False`` and
a logged diagnostic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ExportError
from .params import FLOAT_FIELDS, ParameterSet

_LOGGER = logging.getLogger("chipfx.persistence")

RFX_SIGNATURE = b"rFX "
RFX_VERSION = 120
RFX_HEADER_SIZE = 8
RFX_RECORD_DTYPE = np.dtype(
    [("seed", "<i4"), ("wave_shape", "<i4")] + [(name, "<f4") for name in FLOAT_FIELDS]
)
RFX_RECORD_SIZE = RFX_RECORD_DTYPE.itemsize

SFS_VERSIONS: tuple[int, ...] = (100, 101, 102)
SFS_DEFAULT_VOLUME = 0.5


class LoadResult(BaseModel):
    params: ParameterSet = Field(default_factory=ParameterSet)
    ok: bool = True
    message: str | None = None
    # Only the legacy format stores a playback volume.
    volume: float | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


def _failure(source: str, message: str) -> LoadResult:
    _LOGGER.warning("[%s] %s", source, message)
    return LoadResult(ok=False, message=message)


def _params_from(fields: dict[str, Any], source: str) -> LoadResult | ParameterSet:
    try:
        return ParameterSet.model_validate(fields)
    except ValidationError as exc:
        return _failure(source, f"Invalid parameter values: {exc.error_count()} error(s)")


def _record_fields(record: np.void, names: tuple[str, ...]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for name in names:
        value = record[name]
        fields[name] = int(value) if np.issubdtype(value.dtype, np.integer) else float(value)
    return fields


# -----------------------------------------------------------------------------
# rFX
# -----------------------------------------------------------------------------


def encode_rfx(params: ParameterSet) -> bytes:
    record = np.zeros(1, dtype=RFX_RECORD_DTYPE)
    record[0] = (params.seed, int(params.wave_shape), *params.floats())
    version = np.array(RFX_VERSION, dtype="<i4")
    return RFX_SIGNATURE + version.tobytes() + record.tobytes()


def decode_rfx(data: bytes, *, source: str = "<bytes>") -> LoadResult:
    if len(data) < RFX_HEADER_SIZE or data[:4] != RFX_SIGNATURE:
        return _failure(source, "rFX file does not seem to be valid")

    version = int(np.frombuffer(data, dtype="<i4", count=1, offset=4)[0])
    if version != RFX_VERSION:
        return _failure(source, f"Wrong rFX file version ({version})")

    if len(data) < RFX_HEADER_SIZE + RFX_RECORD_SIZE:
        return _failure(source, "rFX file is truncated")

    record = np.frombuffer(data, dtype=RFX_RECORD_DTYPE, count=1, offset=RFX_HEADER_SIZE)[0]
    fields = _record_fields(record, RFX_RECORD_DTYPE.names or ())
    loaded = _params_from(fields, source)
    if isinstance(loaded, LoadResult):
        return loaded
    return LoadResult(params=loaded)


# -----------------------------------------------------------------------------
# sfxr (.sfs)
# -----------------------------------------------------------------------------


def _sfs_dtype(version: int) -> np.dtype[Any]:
    fields: list[tuple[str, str]] = [("version", "<i4"), ("wave_shape", "<i4")]
    if version == 102:
        fields.append(("volume", "<f4"))
    fields += [("start_frequency", "<f4"), ("min_frequency", "<f4"), ("slide", "<f4")]
    if version >= 101:
        fields.append(("delta_slide", "<f4"))
    fields += [
        ("square_duty", "<f4"),
        ("duty_sweep", "<f4"),
        ("vibrato_depth", "<f4"),
        ("vibrato_speed", "<f4"),
        ("vibrato_phase_delay", "<f4"),
        ("attack_time", "<f4"),
        ("sustain_time", "<f4"),
        ("decay_time", "<f4"),
        ("sustain_punch", "<f4"),
        ("filter_on", "u1"),
        ("lpf_resonance", "<f4"),
        ("lpf_cutoff", "<f4"),
        ("lpf_cutoff_sweep", "<f4"),
        ("hpf_cutoff", "<f4"),
        ("hpf_cutoff_sweep", "<f4"),
        ("phaser_offset", "<f4"),
        ("phaser_sweep", "<f4"),
        ("repeat_speed", "<f4"),
    ]
    if version >= 101:
        fields += [("change_speed", "<f4"), ("change_amount", "<f4")]
    return np.dtype(fields)


# Read but not kept: no counterpart in ParameterSet.
_SFS_DISCARDED = frozenset({"version", "volume", "vibrato_phase_delay", "filter_on"})


def decode_sfs(data: bytes, *, source: str = "<bytes>") -> LoadResult:
    if len(data) < 4:
        return _failure(source, "SFS file is truncated")

    version = int(np.frombuffer(data, dtype="<i4", count=1)[0])
    if version not in SFS_VERSIONS:
        return _failure(source, f"SFS file version not supported ({version})")

    dtype = _sfs_dtype(version)
    if len(data) < dtype.itemsize:
        return _failure(source, "SFS file is truncated")

    record = np.frombuffer(data, dtype=dtype, count=1)[0]
    names = tuple(name for name in dtype.names or () if name not in _SFS_DISCARDED)
    # Fields missing from older versions stay zero.
    fields: dict[str, Any] = {name: 0.0 for name in FLOAT_FIELDS}
    fields.update(_record_fields(record, names))
    volume = float(record["volume"]) if version == 102 else SFS_DEFAULT_VOLUME

    loaded = _params_from(fields, source)
    if isinstance(loaded, LoadResult):
        return loaded
    _LOGGER.debug("[%s] Loaded SFS version %d", source, version)
    return LoadResult(params=loaded, volume=volume)


def encode_sfs(params: ParameterSet, *, volume: float = SFS_DEFAULT_VOLUME) -> bytes:
    """Encode as sfxr version 102."""
    dtype = _sfs_dtype(102)
    record = np.zeros(1, dtype=dtype)
    record["version"] = 102
    record["wave_shape"] = int(params.wave_shape)
    record["volume"] = volume
    for name in FLOAT_FIELDS:
        record[name] = getattr(params, name)
    return record.tobytes()


# -----------------------------------------------------------------------------
# Files
# -----------------------------------------------------------------------------


def load_params(path: str | Path) -> LoadResult:
    source = Path(path)
    suffix = source.suffix.lower()
    if suffix not in (".rfx", ".sfs"):
        return _failure(str(source), f"Unsupported parameter file extension {suffix!r}")

    try:
        data = source.read_bytes()
    except OSError as exc:
        return _failure(str(source), f"Could not read file: {exc}")

    if suffix == ".sfs":
        return decode_sfs(data, source=str(source))
    return decode_rfx(data, source=str(source))


def save_params(params: ParameterSet, path: str | Path) -> Path:
    """Write ``params`` as ``.rfx``; the extension is added when missing."""
    target = Path(path)
    if target.suffix.lower() != ".rfx":
        target = target.with_name(target.name + ".rfx")
    try:
        target.write_bytes(encode_rfx(params))
    except OSError as exc:
        raise ExportError(f"Failed to write parameter file {target}: {exc}") from exc
    _LOGGER.info("Saved parameters to %s", target)
    return target
