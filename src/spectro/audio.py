"""Sample buffer helpers.

Samples are mono float32 PCM, either as numpy arrays or as little-endian
bytes when they cross the worker boundary.
"""

from collections.abc import Iterator

import numpy as np

from spectro.constants import BYTES_PER_SAMPLE


def bytes_to_float32(data: bytes) -> np.ndarray:
    """Interpret little-endian float32 bytes as a sample array.

    The result shares memory with ``data`` and is read-only when ``data``
    is an immutable ``bytes`` object.
    """
    return np.frombuffer(data, dtype="<f4")


def float32_to_bytes(samples: np.ndarray) -> bytes:
    """Serialize samples as little-endian float32 bytes."""
    return np.ascontiguousarray(samples, dtype="<f4").tobytes()


def pcm16_to_float32(data: bytes) -> np.ndarray:
    """Convert PCM16 bytes to float32 array normalized to [-1, 1]."""
    audio = np.frombuffer(data, dtype=np.int16).astype(np.float32)
    audio /= 32768.0
    return audio


def validate_audio_format(data: bytes) -> bool:
    """Check that data holds a whole number of float32 samples."""
    return len(data) % BYTES_PER_SAMPLE == 0


def chunk_samples(samples: np.ndarray, chunk_size: int) -> Iterator[np.ndarray]:
    """Split samples into fixed-size chunks. The last chunk may be smaller."""
    for i in range(0, len(samples), chunk_size):
        yield samples[i : i + chunk_size]


def duration_samples(duration_ms: int, sample_rate: int) -> int:
    """Calculate number of samples for a given duration in milliseconds."""
    return sample_rate * duration_ms // 1000


def sine_wave(
    frequency_hz: float,
    sample_rate: int,
    duration_s: float = 1.0,
    amplitude: float = 1.0,
) -> np.ndarray:
    """Generate a float32 sine tone."""
    n = np.arange(int(round(sample_rate * duration_s)))
    return (amplitude * np.sin(2 * np.pi * frequency_hz * n / sample_rate)).astype(np.float32)


class TransferBuffer:
    """A sample buffer that can be handed off exactly once.

    ``detach()`` returns the serialized samples and invalidates this
    wrapper: any later access raises ``BufferError``. Wrap samples in a
    TransferBuffer when the sender must be prevented from reading them
    after dispatch.
    """

    def __init__(self, samples: np.ndarray):
        self._samples: np.ndarray | None = np.ascontiguousarray(samples, dtype=np.float32)

    @property
    def detached(self) -> bool:
        return self._samples is None

    @property
    def samples(self) -> np.ndarray:
        if self._samples is None:
            raise BufferError("Buffer has been transferred")
        return self._samples

    def __len__(self) -> int:
        return len(self.samples)

    def detach(self) -> bytes:
        """Move the samples out of this buffer as float32 bytes."""
        data = float32_to_bytes(self.samples)
        self._samples = None
        return data
