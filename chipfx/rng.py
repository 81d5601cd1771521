"""Shared pseudo-random stream used by presets and the synthesis engine.

The stream is numpy's PCG64 bit generator, so a given seed produces the same
sequence on every platform. Reseeding only happens through :meth:`RandomSource.seed`.
"""

from __future__ import annotations

import logging

import numpy as np

_LOGGER = logging.getLogger("chipfx.rng")

MAX_SEED = 0xFFFE
NOISE_TABLE_SIZE = 32
_FRND_STEPS = 10_000


def _to_seed(value: int) -> int:
    # Stored seeds are int32; PCG64 needs a non-negative integer.
    return int(value) & 0xFFFFFFFF


class RandomSource:
    """Explicitly seeded random stream.

    All draws go through :meth:`value`, mirroring an integer-based generator:
    ``frnd(scale)`` picks one of 10001 evenly spaced values in ``[0, scale]``.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._seed: int | None = None if seed is None else _to_seed(seed)
        self._generator = np.random.Generator(np.random.PCG64(self._seed))

    @property
    def last_seed(self) -> int | None:
        return self._seed

    def seed(self, value: int) -> None:
        _LOGGER.debug("Reseeding random stream with %d", value)
        self._seed = _to_seed(value)
        self._generator = np.random.Generator(np.random.PCG64(self._seed))

    def value(self, low: int, high: int) -> int:
        """Integer in ``[low, high]``, both ends included."""
        if high < low:
            low, high = high, low
        return int(self._generator.integers(low, high, endpoint=True))

    def coin(self) -> bool:
        return self.value(0, 1) == 1

    def frnd(self, scale: float) -> float:
        return self.value(0, _FRND_STEPS) / _FRND_STEPS * scale

    def jitter(self, amount: float) -> float:
        """Signed perturbation in ``[-amount, amount]``."""
        return self.frnd(2.0 * amount) - amount

    def random_seed(self) -> int:
        return self.value(1, MAX_SEED)

    def noise_table(self, size: int = NOISE_TABLE_SIZE) -> list[float]:
        steps = self._generator.integers(0, _FRND_STEPS, size=size, endpoint=True)
        table = steps / _FRND_STEPS * 2.0 - 1.0
        return [float(value) for value in table]
