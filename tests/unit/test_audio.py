"""Unit tests for sample buffer helpers."""

import numpy as np
import pytest

from spectro.audio import (
    TransferBuffer,
    bytes_to_float32,
    chunk_samples,
    duration_samples,
    float32_to_bytes,
    pcm16_to_float32,
    sine_wave,
    validate_audio_format,
)


class TestConversion:
    """Tests for byte <-> float32 conversion."""

    def test_float32_bytes_exact(self):
        """float32 samples survive serialization bit for bit."""
        samples = np.array([0.0, 0.1, -0.5, 1e-30, np.pi], dtype=np.float32)
        recovered = bytes_to_float32(float32_to_bytes(samples))
        assert recovered.tobytes() == samples.tobytes()

    def test_float32_to_bytes_casts(self):
        """float64 input is stored as float32."""
        data = float32_to_bytes(np.array([0.5, 0.25]))
        assert len(data) == 8

    def test_pcm16_to_float32_max_values(self):
        """Max int16 should map to ~1.0."""
        data = np.array([32767, -32768], dtype=np.int16).tobytes()
        result = pcm16_to_float32(data)
        assert result.dtype == np.float32
        assert abs(result[0] - 1.0) < 0.0001
        assert result[1] == -1.0

    def test_validate_audio_format(self):
        """Only whole float32 samples are valid."""
        assert validate_audio_format(bytes(0)) is True
        assert validate_audio_format(bytes(8)) is True
        assert validate_audio_format(bytes(6)) is False


class TestHelpers:
    """Tests for chunking and generation helpers."""

    def test_chunk_samples_with_remainder(self):
        """Data that doesn't divide evenly."""
        chunks = list(chunk_samples(np.zeros(100, dtype=np.float32), 30))
        assert [len(c) for c in chunks] == [30, 30, 30, 10]

    def test_chunk_samples_empty(self):
        """Empty data should produce no chunks."""
        assert list(chunk_samples(np.zeros(0, dtype=np.float32), 10)) == []

    def test_duration_samples(self):
        """Duration in ms to sample count."""
        assert duration_samples(1000, 44100) == 44100
        assert duration_samples(10, 48000) == 480

    def test_sine_wave(self):
        """Sine tones have the requested length and amplitude."""
        tone = sine_wave(1000.0, 8000, duration_s=0.5, amplitude=0.5)
        assert tone.dtype == np.float32
        assert len(tone) == 4000
        assert np.max(np.abs(tone)) == pytest.approx(0.5, abs=1e-3)


class TestTransferBuffer:
    """Tests for single-handoff buffers."""

    def test_detach_returns_samples(self):
        """Detaching yields the samples as float32 bytes."""
        samples = np.array([1.0, 2.0, 3.0], dtype=np.float32)
        buffer = TransferBuffer(samples)
        assert len(buffer) == 3
        assert buffer.detach() == samples.tobytes()

    def test_access_after_detach_fails(self):
        """The sender cannot read a transferred buffer."""
        buffer = TransferBuffer(np.zeros(4, dtype=np.float32))
        buffer.detach()

        assert buffer.detached
        with pytest.raises(BufferError):
            _ = buffer.samples
        with pytest.raises(BufferError):
            buffer.detach()
