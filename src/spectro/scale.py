"""Frequency scale mapping from FFT bins to output buckets.

Bucket edges are spaced uniformly in Hz (linear scale) or uniformly in mel
and converted back to Hz (mel scale). Each FFT bin is assigned to the bucket
whose Hz range holds its centre frequency and a bucket takes the maximum
magnitude of its bins. Buckets narrower than the bin spacing take the bin
nearest their centre frequency.
"""

from dataclasses import dataclass

import numpy as np

from spectro.constants import MEL_BREAK_HZ, MEL_FACTOR, SCALE_LINEAR, SCALE_MEL
from spectro.options import SpectrogramOptions


def hz_to_mel(hz):
    """Convert frequency in Hz to mel. Accepts scalars or arrays."""
    return MEL_FACTOR * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / MEL_BREAK_HZ)


def mel_to_hz(mel):
    """Convert mel to frequency in Hz. Accepts scalars or arrays."""
    return MEL_BREAK_HZ * (10.0 ** (np.asarray(mel, dtype=np.float64) / MEL_FACTOR) - 1.0)


def bucket_edges(scale: str, size: int, min_hz: float, max_hz: float) -> np.ndarray:
    """Return ``size + 1`` ascending bucket edges in Hz."""
    if scale == SCALE_LINEAR:
        return np.linspace(min_hz, max_hz, size + 1)
    if scale == SCALE_MEL:
        mels = np.linspace(hz_to_mel(min_hz), hz_to_mel(max_hz), size + 1)
        edges = mel_to_hz(mels)
        # Pin the ends so the round trip through log10 cannot drop a bin.
        edges[0], edges[-1] = min_hz, max_hz
        return edges
    raise ValueError(f"Unknown scale: {scale!r}")


@dataclass(frozen=True)
class BucketMap:
    """Precomputed bin ranges for every output bucket.

    Bucket ``b`` aggregates ``magnitudes[..., lo[b]:hi[b]]``.
    """

    lo: np.ndarray
    hi: np.ndarray
    edges: np.ndarray

    @classmethod
    def build(cls, options: SpectrogramOptions) -> "BucketMap":
        """Build the map for resolved options."""
        bin_count = options.window_size // 2
        bin_hz = np.arange(bin_count) * (options.sample_rate / options.window_size)
        edges = bucket_edges(
            options.scale,
            options.scale_size,
            options.min_frequency_hz,
            options.max_frequency_hz,
        )

        lo = np.searchsorted(bin_hz, edges[:-1], side="left")
        hi = np.searchsorted(bin_hz, edges[1:], side="left")
        # Last bucket is closed on the right.
        hi[-1] = np.searchsorted(bin_hz, edges[-1], side="right")

        empty = hi <= lo
        if np.any(empty):
            centres = (edges[:-1][empty] + edges[1:][empty]) / 2.0
            nearest = np.rint(centres * options.window_size / options.sample_rate).astype(np.int64)
            nearest = np.clip(nearest, 0, bin_count - 1)
            lo[empty] = nearest
            hi[empty] = nearest + 1

        return cls(lo=lo, hi=hi, edges=edges)

    @property
    def size(self) -> int:
        return len(self.lo)

    def apply(self, magnitudes: np.ndarray) -> np.ndarray:
        """Map ``(windows, bins)`` magnitudes to ``(windows, buckets)``."""
        out = np.zeros((magnitudes.shape[0], self.size), dtype=np.float32)
        if magnitudes.shape[0] == 0:
            return out
        for b, (lo, hi) in enumerate(zip(self.lo, self.hi)):
            out[:, b] = magnitudes[:, lo:hi].max(axis=1)
        return out
