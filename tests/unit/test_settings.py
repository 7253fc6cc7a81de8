"""Unit tests for environment-driven settings."""

from spectro.constants import DEFAULT_SAMPLE_RATE
from spectro.settings import Settings, load_settings


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults(self, monkeypatch):
        """No environment gives the documented defaults."""
        for name in ("SPECTRO_POOL_SIZE", "SPECTRO_EXECUTOR", "SPECTRO_WARMUP", "SPECTRO_SAMPLE_RATE", "SPECTRO_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        assert load_settings() == Settings()

    def test_overrides(self, monkeypatch):
        """Environment variables override the defaults."""
        monkeypatch.setenv("SPECTRO_POOL_SIZE", "3")
        monkeypatch.setenv("SPECTRO_EXECUTOR", "Thread")
        monkeypatch.setenv("SPECTRO_WARMUP", "no")
        monkeypatch.setenv("SPECTRO_SAMPLE_RATE", "48000")
        monkeypatch.setenv("SPECTRO_LOG_LEVEL", "debug")

        settings = load_settings()
        assert settings.pool_size == 3
        assert settings.executor == "thread"
        assert settings.warmup is False
        assert settings.sample_rate == 48000
        assert settings.log_level == "DEBUG"

    def test_invalid_values_fall_back(self, monkeypatch):
        """Unusable values are replaced by defaults."""
        monkeypatch.setenv("SPECTRO_POOL_SIZE", "-2")
        monkeypatch.setenv("SPECTRO_EXECUTOR", "gpu")
        monkeypatch.setenv("SPECTRO_SAMPLE_RATE", "fast")

        settings = load_settings()
        assert settings.pool_size is None
        assert settings.executor == "process"
        assert settings.sample_rate == DEFAULT_SAMPLE_RATE
