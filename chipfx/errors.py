from __future__ import annotations


class ChipFXError(Exception):
    """Base error for the chipfx library."""


class InvalidParamsError(ChipFXError):
    """Raised when parameter values or preset names cannot be used."""


class RenderError(ChipFXError):
    """Raised when a render call cannot allocate or produce its buffer."""


class ExportError(ChipFXError):
    """Raised when audio or parameter files cannot be written or read."""
