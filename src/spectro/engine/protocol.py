"""Engine protocol defining the interface for spectrogram backends.

This is the sealed boundary between the pure computation and everything
that schedules it (worker handler, pool, server, tests).
"""

from typing import Protocol

import numpy as np

from spectro.options import SpectrogramOptions, SpectrogramResult


class Engine(Protocol):
    """Protocol for spectrogram engines.

    Implementations must be picklable so they can be shipped to worker
    processes alongside each request.
    """

    def compute(
        self,
        samples: np.ndarray,
        start: int,
        length: int,
        options: SpectrogramOptions,
    ) -> SpectrogramResult:
        """Compute the spectrogram of ``samples[start:start + length]``.

        Args:
            samples: Float32 mono samples.
            start: Index of the first sample of the analysed range.
            length: Number of samples in the analysed range.
            options: Options, resolved or not.

        Returns:
            Result carrying the fully resolved options.
        """
        ...

    def warmup(self) -> None:
        """Prime the engine in a freshly started execution context."""
        ...
