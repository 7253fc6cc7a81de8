"""Sliding-window FFT spectrogram engine.

Pure numpy, no concurrency awareness. The pool ships ``SpectrogramEngine``
instances to its workers; ``compute_spectrogram`` is the synchronous entry
point for callers that want to run inline.
"""

import math

import numpy as np

from spectro.options import SpectrogramOptions, SpectrogramResult
from spectro.scale import BucketMap


def hann_window(size: int) -> np.ndarray:
    """Periodic Hann window, the usual choice for STFT analysis."""
    n = np.arange(size)
    return (0.5 - 0.5 * np.cos(2.0 * np.pi * n / size)).astype(np.float32)


def window_count(length: int, options: SpectrogramOptions) -> int:
    """Number of windows produced for ``length`` samples with resolved options."""
    k = options.steps_per_window
    count = math.ceil(length / options.window_step_size) - k + 1
    if options.is_start:
        count += k - 1
    if options.is_end:
        count += k - 1
    return max(0, count)


def frame_samples(
    samples: np.ndarray,
    start: int,
    length: int,
    options: SpectrogramOptions,
) -> np.ndarray:
    """Cut the analysed range into ``(windows, window_size)`` frames.

    Samples outside ``[start, start + length)`` read as zero. With
    ``is_start`` the first frame begins ``window_size - step`` samples
    before ``start`` so the opening samples sit inside full windows.
    """
    step = options.window_step_size
    size = options.window_size
    count = window_count(length, options)
    if count == 0:
        return np.zeros((0, size), dtype=np.float32)

    offset = (options.steps_per_window - 1) * step if options.is_start else 0
    padded_length = max(offset + (count - 1) * step + size, offset + length)
    padded = np.zeros(padded_length, dtype=np.float32)
    padded[offset : offset + length] = samples[start : start + length]

    frames = np.lib.stride_tricks.sliding_window_view(padded, size)[::step]
    return frames[:count]


def compute_spectrogram(
    samples: np.ndarray,
    start: int,
    length: int,
    options: SpectrogramOptions,
) -> SpectrogramResult:
    """Compute a magnitude spectrogram of ``samples[start:start + length]``.

    Raises:
        ValidationError: If the options are invalid.
        IndexError: If the range does not lie inside ``samples``.
    """
    resolved = options.resolve()
    if start < 0 or length < 0 or start + length > len(samples):
        raise IndexError(
            f"Sample range [{start}, {start + length}) is outside a buffer of {len(samples)} samples"
        )

    window = hann_window(resolved.window_size)
    frames = frame_samples(samples, start, length, resolved) * window

    bins = resolved.window_size // 2
    spectrum = np.fft.rfft(frames, axis=1)[:, :bins]
    # 2 / sum(window) puts a unit-amplitude sine at ~1.0
    magnitudes = np.abs(spectrum) * (2.0 / float(window.sum()))

    buckets = BucketMap.build(resolved).apply(magnitudes)
    return SpectrogramResult(
        window_count=frames.shape[0],
        options=resolved,
        spectrogram=buckets.reshape(-1).astype(np.float32, copy=False),
    )


class SpectrogramEngine:
    """Stateless engine wrapping :func:`compute_spectrogram`."""

    def compute(
        self,
        samples: np.ndarray,
        start: int,
        length: int,
        options: SpectrogramOptions,
    ) -> SpectrogramResult:
        return compute_spectrogram(samples, start, length, options)

    def warmup(self) -> None:
        """Run one tiny computation so numpy's FFT plan cache is populated."""
        compute_spectrogram(
            np.zeros(1024, dtype=np.float32),
            0,
            1024,
            SpectrogramOptions(sample_rate=8000, window_size=256, scale_size=16),
        )
