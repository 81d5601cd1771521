from __future__ import annotations

from .audio import SAMPLE_RATE, RenderedWaveform, export_as_code, read_wav, write_wav
from .convert import ExportFormat, convert
from .errors import ChipFXError, ExportError, InvalidParamsError, RenderError
from .logging_utils import configure_logging as _configure_logging
from .params import ParameterSet, WaveShape, reset
from .persistence import (
    LoadResult,
    decode_rfx,
    decode_sfs,
    encode_rfx,
    encode_sfs,
    load_params,
    save_params,
)
from .presets import (
    PRESETS,
    PresetResult,
    blip_select,
    explosion,
    generate,
    hit_hurt,
    jump,
    laser_shoot,
    mutate,
    pickup_coin,
    powerup,
    randomize,
)
from .rng import RandomSource
from .session import Session
from .synth import EngineSnapshot, render

__all__ = [
    "SAMPLE_RATE",
    "PRESETS",
    "ChipFXError",
    "EngineSnapshot",
    "ExportError",
    "ExportFormat",
    "InvalidParamsError",
    "LoadResult",
    "ParameterSet",
    "PresetResult",
    "RandomSource",
    "RenderError",
    "RenderedWaveform",
    "Session",
    "WaveShape",
    "blip_select",
    "convert",
    "decode_rfx",
    "decode_sfs",
    "encode_rfx",
    "encode_sfs",
    "explosion",
    "export_as_code",
    "generate",
    "hit_hurt",
    "jump",
    "laser_shoot",
    "load_params",
    "mutate",
    "pickup_coin",
    "powerup",
    "randomize",
    "read_wav",
    "render",
    "reset",
    "save_params",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
