"""Error taxonomy shared by the engine, the worker boundary and the pool.

Errors that cross the worker boundary travel as plain dicts
(``{"type": ..., "message": ...}``) so they survive pickling into and out
of worker processes unchanged.
"""


class SpectroError(Exception):
    """Base class for all spectro errors."""


class ValidationError(SpectroError, ValueError):
    """Option combination is invalid. Raised before any computation."""


class ComputationError(SpectroError, RuntimeError):
    """Unexpected failure inside the engine."""


class ProtocolError(SpectroError):
    """Unknown action tag or malformed message."""


class PoolIntegrityError(SpectroError):
    """A slot was released that this pool does not own or has not lent out.

    This is a broken invariant in the caller, never handled by the pool.
    """


class PoolClosedError(SpectroError, RuntimeError):
    """The pool is not running."""


_WIRE_TYPES: dict[str, type[SpectroError]] = {
    cls.__name__: cls
    for cls in (ValidationError, ComputationError, ProtocolError, PoolClosedError)
}


def error_to_wire(exc: BaseException) -> dict[str, str]:
    """Convert an exception into the protocol's error dict."""
    name = type(exc).__name__ if type(exc).__name__ in _WIRE_TYPES else "ComputationError"
    return {"type": name, "message": str(exc)}


def error_from_wire(data: object) -> SpectroError:
    """Rebuild an exception from a protocol error dict.

    Unknown or malformed entries become ComputationError so the caller is
    always rejected with something from the taxonomy.
    """
    if isinstance(data, dict):
        cls = _WIRE_TYPES.get(str(data.get("type")), ComputationError)
        return cls(str(data.get("message", "")))
    return ComputationError(str(data))
