"""Fake engine for deterministic pool and server tests.

Produces output shaped exactly like the real engine (same window count and
length invariant) without doing any FFT work, and records how it was
called so tests can observe scheduling.
"""

import threading
import time

import numpy as np

from spectro.engine.spectrogram import window_count
from spectro.errors import ComputationError
from spectro.options import SpectrogramOptions, SpectrogramResult


class FakeEngine:
    """Deterministic CPU engine for testing.

    Each output value is the mean of the analysed range, so results depend
    on the input content. Intended for thread executors: the call log and
    concurrency counters live in this process.
    """

    def __init__(self, latency_ms: float = 0.0, fail_with: str | None = None):
        """Initialize the fake engine.

        Args:
            latency_ms: Simulated computation time in milliseconds.
            fail_with: If set, every compute raises ComputationError with this message.
        """
        self._latency_ms = latency_ms
        self._fail_with = fail_with
        self._lock = threading.Lock()
        self._active = 0
        self._peak_active = 0
        self._calls: list[float] = []
        self._warmups = 0

    def compute(
        self,
        samples: np.ndarray,
        start: int,
        length: int,
        options: SpectrogramOptions,
    ) -> SpectrogramResult:
        resolved = options.resolve()
        with self._lock:
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
            self._calls.append(float(samples[start]) if length else 0.0)
        try:
            if self._latency_ms > 0:
                time.sleep(self._latency_ms / 1000.0)
            if self._fail_with is not None:
                raise ComputationError(self._fail_with)

            count = window_count(length, resolved)
            level = float(np.mean(samples[start : start + length])) if length else 0.0
            spectrogram = np.full(count * resolved.scale_size, level, dtype=np.float32)
            return SpectrogramResult(count, resolved, spectrogram)
        finally:
            with self._lock:
                self._active -= 1

    def warmup(self) -> None:
        with self._lock:
            self._warmups += 1

    @property
    def call_count(self) -> int:
        """Number of compute calls made."""
        return len(self._calls)

    @property
    def calls(self) -> list[float]:
        """First analysed sample of every call, in start order."""
        with self._lock:
            return list(self._calls)

    @property
    def peak_active(self) -> int:
        """Highest number of computations observed running at once."""
        return self._peak_active

    @property
    def warmup_count(self) -> int:
        return self._warmups
