"""Unit tests for protocol messages and the worker-side handler."""

import numpy as np
import pytest

from spectro.audio import float32_to_bytes, sine_wave
from spectro.constants import ACTION_COMPUTE_SPECTROGRAM, ACTION_WARMUP
from spectro.engine.fake import FakeEngine
from spectro.engine.spectrogram import SpectrogramEngine
from spectro.errors import (
    ComputationError,
    ProtocolError,
    ValidationError,
    error_from_wire,
    error_to_wire,
)
from spectro.options import SpectrogramOptions
from spectro.protocol import failure, make_request, parse_request, success, unwrap_response
from spectro.worker import handle_message


def compute_request(samples: np.ndarray, **options) -> dict:
    options.setdefault("sampleRate", 44100)
    return make_request(
        ACTION_COMPUTE_SPECTROGRAM,
        {
            "samples_buffer": float32_to_bytes(samples),
            "samples_start": 0,
            "samples_length": len(samples),
            "options": options,
        },
    )


class TestMessages:
    """Tests for request/response shapes."""

    def test_parse_request(self):
        """Well-formed requests split into action and payload."""
        assert parse_request(make_request("x", {"a": 1})) == ("x", {"a": 1})

    @pytest.mark.parametrize("message", [None, {}, {"action": 3}, {"action": "x", "payload": []}])
    def test_parse_malformed(self, message):
        """Malformed requests raise ProtocolError."""
        with pytest.raises(ProtocolError):
            parse_request(message)

    def test_unwrap_payload(self):
        """Success responses yield their payload."""
        assert unwrap_response(success({"ok": True})) == {"ok": True}

    def test_unwrap_error(self):
        """Error responses raise the carried error type."""
        with pytest.raises(ValidationError, match="bad"):
            unwrap_response(failure(ValidationError("bad")))

    @pytest.mark.parametrize("response", [{}, {"payload": 1, "error": {}}, "nope"])
    def test_unwrap_requires_exactly_one(self, response):
        """Both or neither of payload/error is a protocol violation."""
        with pytest.raises(ProtocolError):
            unwrap_response(response)


class TestErrorWire:
    """Tests for error conversion across the boundary."""

    def test_roundtrip_keeps_type(self):
        """Taxonomy errors keep their type and message."""
        rebuilt = error_from_wire(error_to_wire(ProtocolError("Unknown action: x")))
        assert isinstance(rebuilt, ProtocolError)
        assert str(rebuilt) == "Unknown action: x"

    def test_foreign_errors_become_computation_errors(self):
        """Exceptions outside the taxonomy are reported as ComputationError."""
        assert error_to_wire(KeyError("k"))["type"] == "ComputationError"
        assert isinstance(error_from_wire({"type": "Weird", "message": "m"}), ComputationError)
        assert isinstance(error_from_wire("text"), ComputationError)


class TestHandleMessage:
    """Tests for the worker message handler."""

    def test_compute(self):
        """A compute request returns the spectrogram and echoes the input."""
        samples = sine_wave(440.0, 44100, duration_s=0.25)
        request = compute_request(samples, scaleSize=64)
        response = handle_message(SpectrogramEngine(), request)

        payload = unwrap_response(response)
        spectrogram = np.frombuffer(payload["spectrogram_buffer"], dtype=np.float32)
        assert len(spectrogram) == payload["window_count"] * 64
        assert payload["options"]["scaleSize"] == 64
        assert payload["input_buffer"] == request["payload"]["samples_buffer"]

    def test_unknown_action(self):
        """Unknown actions yield an error response, not an exception."""
        response = handle_message(SpectrogramEngine(), make_request("explode", {}))
        assert "payload" not in response
        assert response["error"]["type"] == "ProtocolError"
        assert "Unknown action" in response["error"]["message"]

    def test_malformed_payload(self):
        """Missing payload fields are a protocol error."""
        response = handle_message(SpectrogramEngine(), make_request(ACTION_COMPUTE_SPECTROGRAM, {}))
        assert response["error"]["type"] == "ProtocolError"

    def test_validation_error(self):
        """Invalid options come back as ValidationError."""
        request = compute_request(np.zeros(8192, dtype=np.float32), windowStepSize=1000)
        response = handle_message(SpectrogramEngine(), request)

        assert response["error"]["type"] == "ValidationError"
        assert "evenly divisible" in response["error"]["message"]

    def test_out_of_range_is_computation_error(self):
        """Engine failures are caught and reported as ComputationError."""
        request = compute_request(np.zeros(10, dtype=np.float32))
        request["payload"]["samples_length"] = 100
        response = handle_message(SpectrogramEngine(), request)

        assert response["error"]["type"] == "ComputationError"
        assert "IndexError" in response["error"]["message"]

    def test_engine_failure(self):
        """A failing engine produces an error response."""
        request = compute_request(np.zeros(4096, dtype=np.float32))
        response = handle_message(FakeEngine(fail_with="boom"), request)
        assert response == {"error": {"type": "ComputationError", "message": "boom"}}

    def test_warmup(self):
        """Warmup calls the engine's warmup."""
        engine = FakeEngine()
        response = handle_message(engine, make_request(ACTION_WARMUP, {}))

        assert response == {"payload": {}}
        assert engine.warmup_count == 1

    def test_options_resolved_in_response(self):
        """The response echoes fully resolved options."""
        request = compute_request(np.zeros(8192, dtype=np.float32))
        payload = handle_message(SpectrogramEngine(), request)["payload"]
        options = SpectrogramOptions.from_wire(payload["options"])
        assert options == options.resolve()
