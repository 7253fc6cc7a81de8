"""Spectrogram computation with an off-loop worker pool."""

from spectro.engine.spectrogram import SpectrogramEngine, compute_spectrogram
from spectro.errors import (
    ComputationError,
    PoolClosedError,
    PoolIntegrityError,
    ProtocolError,
    SpectroError,
    ValidationError,
)
from spectro.options import PooledSpectrogramResult, SpectrogramOptions, SpectrogramResult
from spectro.pool import WorkerPool

__all__ = [
    "compute_spectrogram",
    "SpectrogramEngine",
    "SpectrogramOptions",
    "SpectrogramResult",
    "PooledSpectrogramResult",
    "WorkerPool",
    "SpectroError",
    "ValidationError",
    "ComputationError",
    "ProtocolError",
    "PoolIntegrityError",
    "PoolClosedError",
]
