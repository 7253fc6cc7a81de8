"""Request/response messages exchanged with pool workers.

A request is ``{"action": tag, "payload": {...}}``. A response carries
exactly one of ``payload`` or ``error``. Sample and spectrogram buffers
travel as float32 ``bytes``; the sender gives up its buffer when the
request is built and the worker hands the same bytes back as
``input_buffer``.
"""

from typing import Any, TypedDict

from spectro.errors import ProtocolError, error_from_wire, error_to_wire


class Request(TypedDict):
    action: str
    payload: dict[str, Any]


class ComputeSpectrogramPayload(TypedDict):
    samples_buffer: bytes
    samples_start: int
    samples_length: int
    options: dict[str, Any]


class ComputeSpectrogramResponsePayload(TypedDict):
    window_count: int
    options: dict[str, Any]
    spectrogram_buffer: bytes
    input_buffer: bytes


def make_request(action: str, payload: dict[str, Any]) -> Request:
    return {"action": action, "payload": payload}


def parse_request(message: object) -> tuple[str, dict[str, Any]]:
    """Split a request into its action tag and payload.

    Raises:
        ProtocolError: If the message is not a well-formed request.
    """
    if not isinstance(message, dict) or not isinstance(message.get("action"), str):
        raise ProtocolError("Malformed request: expected {'action': str, 'payload': dict}")
    payload = message.get("payload", {})
    if not isinstance(payload, dict):
        raise ProtocolError("Malformed request: payload must be a dict")
    return message["action"], payload


def success(payload: Any) -> dict[str, Any]:
    return {"payload": payload}


def failure(exc: BaseException) -> dict[str, Any]:
    return {"error": error_to_wire(exc)}


def unwrap_response(response: object) -> Any:
    """Return the payload of a response or raise its carried error.

    Raises:
        ProtocolError: If the response has both or neither of payload/error.
        SpectroError: The error carried by the response.
    """
    if not isinstance(response, dict):
        raise ProtocolError("Malformed response: expected a dict")
    has_payload = "payload" in response
    has_error = "error" in response
    if has_payload == has_error:
        raise ProtocolError("Malformed response: expected exactly one of payload or error")
    if has_error:
        raise error_from_wire(response["error"])
    return response["payload"]
