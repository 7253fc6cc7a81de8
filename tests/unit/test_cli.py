"""Unit tests for the command line interface."""

import numpy as np
import pytest

from spectro import cli
from spectro.audio import float32_to_bytes, sine_wave
from spectro.pool import WorkerPool, make_executor_factory


class ThreadPool(WorkerPool):
    """WorkerPool with thread slots so the CLI can be tested in-process."""

    def __init__(self, *args, **kwargs):
        kwargs["executor_factory"] = make_executor_factory("thread")
        super().__init__(*args, **kwargs)


class TestCompute:
    """Tests for `spectro compute`."""

    def test_writes_matrix(self, tmp_path, monkeypatch):
        """The output file holds a windows x buckets matrix."""
        monkeypatch.setattr(cli, "WorkerPool", ThreadPool)
        source = tmp_path / "tone.f32"
        source.write_bytes(float32_to_bytes(sine_wave(440.0, 8000, duration_s=0.5)))
        output = tmp_path / "out.npy"

        code = cli.main(
            [
                "compute",
                str(source),
                "-o",
                str(output),
                "--sample-rate",
                "8000",
                "--window-size",
                "512",
                "--scale-size",
                "24",
            ]
        )

        assert code == 0
        matrix = np.load(output)
        assert matrix.shape[1] == 24
        # 4000 samples, step 128, padded at both ends
        assert matrix.shape[0] == -(-4000 // 128) + 3

    def test_invalid_options(self, tmp_path, monkeypatch, capsys):
        """Invalid options exit non-zero with the error message."""
        monkeypatch.setattr(cli, "WorkerPool", ThreadPool)
        source = tmp_path / "tone.f32"
        source.write_bytes(bytes(4096 * 4))

        code = cli.main(
            ["compute", str(source), "--sample-rate", "8000", "--window-step-size", "1000"]
        )

        assert code == 1
        assert "evenly divisible" in capsys.readouterr().err

    def test_requires_command(self):
        """A subcommand is mandatory."""
        with pytest.raises(SystemExit):
            cli.main([])
