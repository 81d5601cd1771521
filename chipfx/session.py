from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from .audio import RenderedWaveform, export_as_code, write_wav
from .convert import ExportFormat, convert
from .errors import ExportError
from .params import ParameterSet, reset
from .persistence import LoadResult, load_params, save_params
from .presets import PresetResult, generate, mutate, randomize
from .rng import RandomSource
from .synth import MAX_DURATION_SECONDS, render

_LOGGER = logging.getLogger("chipfx.session")

DEFAULT_VOLUME = 0.6


class Session:
    """Owner of the "current" sound: parameters, random stream and output settings.

    Renders are serialized so two requests never share the random stream at
    the same time. ``volume`` is not applied to rendered data; it is handed to
    whatever plays the waveform back.
    """

    def __init__(
        self,
        rng: RandomSource | None = None,
        *,
        volume: float = DEFAULT_VOLUME,
        export_format: ExportFormat | None = None,
        max_duration_seconds: float = MAX_DURATION_SECONDS,
    ) -> None:
        self.rng = rng or RandomSource()
        self.volume = volume
        self.export_format = export_format or ExportFormat()
        self.max_duration_seconds = max_duration_seconds
        self.params: ParameterSet = reset(self.rng)
        self.regenerate = True
        self.waveform: RenderedWaveform | None = None
        self._render_lock = threading.Lock()

    def _apply(self, result: PresetResult) -> ParameterSet:
        self.params = result.params
        self.regenerate = self.regenerate or result.regenerate
        return self.params

    def reset(self) -> ParameterSet:
        self.params = reset(self.rng)
        self.regenerate = True
        return self.params

    def generate(self, name: str) -> ParameterSet:
        return self._apply(generate(name, self.rng))

    def randomize(self) -> ParameterSet:
        return self._apply(randomize(self.rng))

    def mutate(self) -> ParameterSet:
        return self._apply(mutate(self.params, self.rng))

    def update(self, **changes: Any) -> ParameterSet:
        self.params = self.params.evolve(**changes)
        self.regenerate = True
        return self.params

    def load(self, path: str | Path) -> LoadResult:
        result = load_params(path)
        if not result.ok:
            return result
        self.params = result.params
        if result.volume is not None:
            self.volume = result.volume
        self.regenerate = True
        return result

    def save(self, path: str | Path) -> Path:
        return save_params(self.params, path)

    def render(self, *, force: bool = False) -> RenderedWaveform:
        with self._render_lock:
            if self.waveform is None or self.regenerate or force:
                self.waveform = render(
                    self.params,
                    self.rng,
                    max_duration_seconds=self.max_duration_seconds,
                )
                self.regenerate = False
            return self.waveform

    def export(self, path: str | Path) -> Path:
        target = Path(path)
        waveform = convert(self.render(), self.export_format)
        match target.suffix.lower():
            case ".wav":
                return write_wav(target, waveform)
            case ".h":
                return export_as_code(target, waveform)
            case suffix:
                raise ExportError(f"Unsupported export extension {suffix!r}; use .wav or .h")
