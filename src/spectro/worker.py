"""Worker-side message handling.

``handle_message`` runs inside a pool slot's executor. It never raises:
every failure is turned into an error response so a bad request cannot
take the execution context down with it.
"""

import logging
from collections.abc import Callable
from typing import Any

import numpy as np

from spectro.audio import bytes_to_float32
from spectro.constants import ACTION_COMPUTE_SPECTROGRAM, ACTION_WARMUP
from spectro.engine.protocol import Engine
from spectro.errors import ComputationError, ProtocolError, SpectroError
from spectro.options import SpectrogramOptions
from spectro.protocol import failure, parse_request, success

logger = logging.getLogger(__name__)


def _compute_spectrogram(engine: Engine, payload: dict[str, Any]) -> dict[str, Any]:
    try:
        samples_buffer = payload["samples_buffer"]
        start = int(payload["samples_start"])
        length = int(payload["samples_length"])
        options = SpectrogramOptions.from_wire(payload["options"])
    except (KeyError, TypeError) as e:
        raise ProtocolError(f"Malformed compute-spectrogram payload: {e}") from e

    samples = bytes_to_float32(samples_buffer)
    result = engine.compute(samples, start, length, options)
    return {
        "window_count": result.window_count,
        "options": result.options.to_wire(),
        "spectrogram_buffer": np.ascontiguousarray(result.spectrogram, dtype="<f4").tobytes(),
        "input_buffer": samples_buffer,
    }


def _warmup(engine: Engine, payload: dict[str, Any]) -> dict[str, Any]:
    engine.warmup()
    return {}


HANDLERS: dict[str, Callable[[Engine, dict[str, Any]], dict[str, Any]]] = {
    ACTION_COMPUTE_SPECTROGRAM: _compute_spectrogram,
    ACTION_WARMUP: _warmup,
}


def handle_message(engine: Engine, message: object) -> dict[str, Any]:
    """Handle one request and return exactly one response."""
    try:
        action, payload = parse_request(message)
        handler = HANDLERS.get(action)
        if handler is None:
            raise ProtocolError(f"Unknown action: {action}")
        return success(handler(engine, payload))
    except SpectroError as e:
        return failure(e)
    except Exception as e:
        logger.exception("Spectrogram worker failed")
        return failure(ComputationError(f"{type(e).__name__}: {e}"))
