"""Core constants for the spectro service.

Defaults mirror the browser implementation the settings surface was built
against: a 4096-sample window with 75% overlap on a mel scale.
"""

# Analysis window
DEFAULT_WINDOW_SIZE: int = 4096  # samples
DEFAULT_STEP_DIVISOR: int = 4  # window_size // 4 -> 1024 step, 75% overlap

# Frequency scales
SCALE_LINEAR: str = "linear"
SCALE_MEL: str = "mel"
SCALES: tuple[str, ...] = (SCALE_LINEAR, SCALE_MEL)
DEFAULT_SCALE: str = SCALE_MEL

# Mel conversion (O'Shaughnessy formula)
MEL_FACTOR: float = 2595.0
MEL_BREAK_HZ: float = 700.0

# Input format: 32-bit float little-endian PCM
BYTES_PER_SAMPLE: int = 4
DEFAULT_SAMPLE_RATE: int = 44100  # Hz

# Pool sizing when os.cpu_count() is unavailable
DEFAULT_POOL_SIZE: int = 4

# Protocol action tags
ACTION_COMPUTE_SPECTROGRAM: str = "compute-spectrogram"
ACTION_WARMUP: str = "warmup"

STEP_DIVISIBILITY_MESSAGE: str = (
    "Window step size must be evenly divisible by the window size"
)
