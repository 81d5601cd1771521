from __future__ import annotations

import pytest
import soundfile as sf  # type: ignore[import]

from chipfx.convert import ExportFormat
from chipfx.errors import ExportError
from chipfx.params import ParameterSet
from chipfx.persistence import encode_sfs
from chipfx.rng import RandomSource
from chipfx.session import DEFAULT_VOLUME, Session


def _session(**kwargs) -> Session:
    return Session(RandomSource(7), max_duration_seconds=0.2, **kwargs)


def test_new_session_starts_from_reset() -> None:
    session = _session()
    assert session.params.seed != 0
    assert session.regenerate is True
    assert session.waveform is None
    assert session.volume == DEFAULT_VOLUME


def test_render_is_cached_until_params_change() -> None:
    session = _session()
    first = session.render()
    assert session.regenerate is False
    assert session.render() is first
    assert session.render(force=True) is not first

    session.update(square_duty=0.5)
    assert session.regenerate is True
    assert session.render() is not first


def test_generate_and_randomize_request_regeneration() -> None:
    session = _session()
    session.render()
    params = session.generate("blip")
    assert session.params == params
    assert session.regenerate is True

    session.render()
    session.randomize()
    assert session.regenerate is True

    session.render()
    before = session.params
    session.mutate()
    assert session.params != before
    assert session.regenerate is True


def test_reset_returns_baseline() -> None:
    session = _session()
    session.generate("laser")
    params = session.reset()
    assert params.model_dump(exclude={"seed"}) == ParameterSet().model_dump(exclude={"seed"})


def test_load_adopts_params_and_volume(tmp_path) -> None:
    path = tmp_path / "legacy.sfs"
    path.write_bytes(encode_sfs(ParameterSet(sustain_time=0.1), volume=0.9))
    session = _session()
    result = session.load(path)
    assert result.ok
    assert session.params.sustain_time == pytest.approx(0.1)
    assert session.volume == pytest.approx(0.9)
    assert session.regenerate is True


def test_failed_load_keeps_current_sound(tmp_path) -> None:
    session = _session()
    before = session.params
    result = session.load(tmp_path / "missing.rfx")
    assert not result.ok
    assert session.params == before
    assert session.volume == DEFAULT_VOLUME


def test_save_then_load(tmp_path) -> None:
    session = _session()
    session.generate("powerup")
    path = session.save(tmp_path / "power")

    other = _session()
    assert other.load(path).ok
    assert other.params == session.params


def test_export_wav_uses_format(tmp_path) -> None:
    session = _session(export_format=ExportFormat(sample_rate=22_050, bit_depth=8, channels=2))
    path = session.export(tmp_path / "out.wav")
    info = sf.info(path)
    assert info.samplerate == 22_050
    assert info.channels == 2
    assert info.subtype == "PCM_U8"


def test_export_code(tmp_path) -> None:
    session = _session()
    session.generate("pickup")
    text = session.export(tmp_path / "coin.h").read_text(encoding="utf-8")
    assert "#define COIN_SAMPLE_SIZE      16" in text
    assert "COIN_DATA[" in text


def test_export_rejects_unknown_extension(tmp_path) -> None:
    with pytest.raises(ExportError, match="Unsupported export extension"):
        _session().export(tmp_path / "out.mp3")
