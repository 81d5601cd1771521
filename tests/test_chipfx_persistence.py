from __future__ import annotations

import logging

import numpy as np
import pytest

from chipfx.errors import ExportError
from chipfx.params import ParameterSet, WaveShape
from chipfx.persistence import (
    RFX_RECORD_SIZE,
    _sfs_dtype,
    decode_rfx,
    decode_sfs,
    encode_rfx,
    encode_sfs,
    load_params,
    save_params,
)
from chipfx.presets import explosion, randomize
from chipfx.rng import RandomSource


def test_record_layout() -> None:
    data = encode_rfx(ParameterSet(seed=-7, wave_shape=WaveShape.SINE, attack_time=0.5))
    assert RFX_RECORD_SIZE == 96
    assert len(data) == 104
    assert data[:4] == b"rFX "
    assert int.from_bytes(data[4:8], "little") == 120
    assert int.from_bytes(data[8:12], "little", signed=True) == -7
    assert int.from_bytes(data[12:16], "little") == 2
    assert np.frombuffer(data, dtype="<f4", count=1, offset=16)[0] == 0.5


@pytest.mark.parametrize("seed", [1, 2, 3, 99, 4096])
def test_randomized_params_survive_encoding(seed: int) -> None:
    params = randomize(RandomSource(seed)).params
    result = decode_rfx(encode_rfx(params))
    assert result.ok
    assert result.params == params
    assert result.volume is None


def test_bad_signature_yields_defaults(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="chipfx.persistence")
    data = b"XYZ " + encode_rfx(explosion(RandomSource(4)).params)[4:]
    result = decode_rfx(data, source="bad.rfx")
    assert not result.ok
    assert result.params == ParameterSet()
    assert result.message == "rFX file does not seem to be valid"
    assert "[bad.rfx] rFX file does not seem to be valid" in caplog.text


def test_wrong_version() -> None:
    data = bytearray(encode_rfx(ParameterSet()))
    data[4:8] = (100).to_bytes(4, "little")
    result = decode_rfx(bytes(data))
    assert not result.ok
    assert result.message == "Wrong rFX file version (100)"
    assert result.params == ParameterSet()


@pytest.mark.parametrize("size", [0, 3, 8, 50, 103])
def test_short_input(size: int) -> None:
    result = decode_rfx(encode_rfx(ParameterSet(seed=5))[:size])
    assert not result.ok
    assert result.params == ParameterSet()


def test_unknown_wave_shape_in_record() -> None:
    data = bytearray(encode_rfx(ParameterSet()))
    data[12:16] = (9).to_bytes(4, "little")
    result = decode_rfx(bytes(data))
    assert not result.ok
    assert "Invalid parameter values" in (result.message or "")


def test_sfs_current_version_keeps_volume() -> None:
    params = randomize(RandomSource(12)).params.evolve(seed=0)
    result = decode_sfs(encode_sfs(params, volume=0.8))
    assert result.ok
    assert result.params == params
    assert result.volume == pytest.approx(0.8)


def test_sfs_version_100_fills_missing_fields() -> None:
    record = np.zeros(1, dtype=_sfs_dtype(100))
    record["version"] = 100
    record["wave_shape"] = 2
    record["start_frequency"] = 0.5
    record["slide"] = 0.25
    record["decay_time"] = 0.3
    record["filter_on"] = 1
    record["vibrato_phase_delay"] = 0.7

    result = decode_sfs(record.tobytes())
    assert result.ok
    params = result.params
    assert params.seed == 0
    assert params.wave_shape is WaveShape.SINE
    assert params.start_frequency == 0.5
    assert params.slide == 0.25
    assert params.delta_slide == 0.0
    assert params.change_speed == 0.0
    assert params.change_amount == 0.0
    assert result.volume == 0.5


def test_sfs_version_101_reads_arpeggio() -> None:
    record = np.zeros(1, dtype=_sfs_dtype(101))
    record["version"] = 101
    record["delta_slide"] = -0.5
    record["change_speed"] = 0.25
    record["change_amount"] = 0.75

    result = decode_sfs(record.tobytes())
    assert result.ok
    assert result.params.delta_slide == -0.5
    assert result.params.change_speed == 0.25
    assert result.params.change_amount == 0.75
    assert result.volume == 0.5


def test_sfs_rejects_unknown_version_and_truncation() -> None:
    assert not decode_sfs((99).to_bytes(4, "little") + bytes(200)).ok
    assert not decode_sfs(encode_sfs(ParameterSet())[:40]).ok
    assert not decode_sfs(b"").ok


def test_save_and_load_round_trip(tmp_path) -> None:
    params = explosion(RandomSource(31)).params
    path = save_params(params, tmp_path / "boom")
    assert path == tmp_path / "boom.rfx"
    assert path.stat().st_size == 104

    result = load_params(path)
    assert result.ok
    assert result.params == params


def test_load_sfs_file(tmp_path) -> None:
    path = tmp_path / "legacy.sfs"
    path.write_bytes(encode_sfs(ParameterSet(decay_time=0.6), volume=0.3))
    result = load_params(path)
    assert result.ok
    assert result.params.decay_time == pytest.approx(0.6)
    assert result.volume == pytest.approx(0.3)


def test_load_failures_never_raise(tmp_path) -> None:
    missing = load_params(tmp_path / "missing.rfx")
    assert not missing.ok
    assert "Could not read file" in (missing.message or "")

    text = tmp_path / "notes.txt"
    text.write_text("hello", encoding="utf-8")
    unsupported = load_params(text)
    assert not unsupported.ok
    assert unsupported.params == ParameterSet()


def test_save_failure_raises(tmp_path) -> None:
    with pytest.raises(ExportError):
        save_params(ParameterSet(), tmp_path / "missing" / "sound.rfx")
