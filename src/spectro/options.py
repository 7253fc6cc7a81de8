"""Spectrogram options and results.

Options are plain frozen dataclasses with ``snake_case`` attributes. On the
wire they use the camelCase names the settings surface speaks
(``sampleRate``, ``windowStepSize``, ...).
"""

from dataclasses import asdict, dataclass, field, fields, replace

import numpy as np

from spectro.constants import (
    DEFAULT_SCALE,
    DEFAULT_STEP_DIVISOR,
    DEFAULT_WINDOW_SIZE,
    SCALES,
    STEP_DIVISIBILITY_MESSAGE,
)
from spectro.errors import ValidationError

_WIRE_NAMES: dict[str, str] = {
    "sample_rate": "sampleRate",
    "window_size": "windowSize",
    "window_step_size": "windowStepSize",
    "scale": "scale",
    "scale_size": "scaleSize",
    "min_frequency_hz": "minFrequencyHz",
    "max_frequency_hz": "maxFrequencyHz",
    "is_start": "isStart",
    "is_end": "isEnd",
}
_FROM_WIRE: dict[str, str] = {wire: attr for attr, wire in _WIRE_NAMES.items()}


@dataclass(frozen=True)
class SpectrogramOptions:
    """Configuration for one spectrogram computation.

    Any field left as ``None`` is filled in by :meth:`resolve`.
    """

    sample_rate: float
    window_size: int = DEFAULT_WINDOW_SIZE
    window_step_size: int | None = None
    scale: str = DEFAULT_SCALE
    scale_size: int | None = None
    min_frequency_hz: float | None = None
    max_frequency_hz: float | None = None
    is_start: bool = False
    is_end: bool = False

    def resolve(self) -> "SpectrogramOptions":
        """Return a copy with every default applied, after validation.

        Raises:
            ValidationError: If the combination of options is invalid.
        """
        if self.sample_rate is None or self.sample_rate <= 0:
            raise ValidationError("Sample rate must be a positive number")
        if self.window_size <= 0 or self.window_size % 2 != 0:
            raise ValidationError("Window size must be a positive even number")

        step = self.window_step_size
        if step is None:
            step = max(1, self.window_size // DEFAULT_STEP_DIVISOR)
        if step <= 0 or step > self.window_size:
            raise ValidationError("Window step size must be between 1 and the window size")
        if self.window_size % step != 0:
            raise ValidationError(STEP_DIVISIBILITY_MESSAGE)

        if self.scale not in SCALES:
            raise ValidationError(f"Scale must be one of {', '.join(SCALES)}, got {self.scale!r}")

        scale_size = self.scale_size if self.scale_size is not None else self.window_size // 2
        if scale_size < 1:
            raise ValidationError("Scale size must be at least 1")

        min_hz = 0.0 if self.min_frequency_hz is None else float(self.min_frequency_hz)
        if self.max_frequency_hz is None:
            max_hz = self.sample_rate * (self.window_size - 2) / (2 * self.window_size)
        else:
            max_hz = float(self.max_frequency_hz)
        if not 0 <= min_hz < max_hz <= self.sample_rate / 2:
            raise ValidationError(
                "Frequency range must satisfy 0 <= minFrequencyHz < maxFrequencyHz "
                f"<= sampleRate / 2 (got {min_hz}, {max_hz})"
            )

        return replace(
            self,
            window_step_size=int(step),
            scale_size=int(scale_size),
            min_frequency_hz=min_hz,
            max_frequency_hz=max_hz,
            is_start=bool(self.is_start),
            is_end=bool(self.is_end),
        )

    @property
    def steps_per_window(self) -> int:
        """Number of step sizes in one window (requires resolved options)."""
        return self.window_size // self.window_step_size

    def to_wire(self) -> dict:
        """Convert to the camelCase dict used in protocol messages."""
        return {_WIRE_NAMES[name]: value for name, value in asdict(self).items()}

    @classmethod
    def from_wire(cls, data: dict) -> "SpectrogramOptions":
        """Build options from a camelCase (or snake_case) dict.

        Raises:
            ValidationError: On unrecognized option names or a missing sample rate.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _FROM_WIRE.get(key, key)
            if name not in known:
                raise ValidationError(f"Unrecognized option: {key}")
            kwargs[name] = value
        if "sample_rate" not in kwargs:
            raise ValidationError("Option sampleRate is required")
        return cls(**kwargs)


@dataclass
class SpectrogramResult:
    """Output of one computation.

    ``spectrogram`` is flat, window-major and bucket-minor, with
    ``len(spectrogram) == window_count * options.scale_size``.
    """

    window_count: int
    options: SpectrogramOptions
    spectrogram: np.ndarray = field(repr=False)

    def as_matrix(self) -> np.ndarray:
        """View the flat spectrogram as ``(window_count, scale_size)``."""
        return self.spectrogram.reshape(self.window_count, self.options.scale_size)


@dataclass
class PooledSpectrogramResult(SpectrogramResult):
    """Result of a pool-dispatched computation, with the echoed input samples."""

    input: np.ndarray = field(default=None, repr=False)
