"""Runtime configuration for the spectro service, read from the environment."""

import logging
import os
from dataclasses import dataclass

from spectro.constants import DEFAULT_SAMPLE_RATE

_BOOL_TRUTHY = {"1", "true", "yes", "on"}
_EXECUTOR_KINDS = {"process", "thread"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _BOOL_TRUTHY


def _env_int(name: str, default: int | None) -> int | None:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    pool_size: int | None = None  # None -> CPU count
    executor: str = "process"
    warmup: bool = True
    sample_rate: int = DEFAULT_SAMPLE_RATE
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from SPECTRO_* environment variables.

    Unparseable or out-of-range values fall back to the defaults.
    """
    pool_size = _env_int("SPECTRO_POOL_SIZE", None)
    if pool_size is not None and pool_size < 1:
        pool_size = None

    executor = os.getenv("SPECTRO_EXECUTOR", "process").strip().lower()
    if executor not in _EXECUTOR_KINDS:
        executor = "process"

    sample_rate = _env_int("SPECTRO_SAMPLE_RATE", DEFAULT_SAMPLE_RATE)
    if sample_rate is None or sample_rate <= 0:
        sample_rate = DEFAULT_SAMPLE_RATE

    return Settings(
        pool_size=pool_size,
        executor=executor,
        warmup=_env_bool("SPECTRO_WARMUP", True),
        sample_rate=sample_rate,
        log_level=os.getenv("SPECTRO_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
