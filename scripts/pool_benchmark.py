#!/usr/bin/env python3
"""Measure spectrogram throughput through the worker pool.

Submits a burst of synthetic one-second tones and reports per-task
latency percentiles, showing how the FIFO backlog grows once every slot
is busy.

Usage:
    uv run scripts/pool_benchmark.py --tasks 32 --pool-size 4
"""

import argparse
import asyncio
import time

import numpy as np

from spectro.audio import sine_wave
from spectro.options import SpectrogramOptions
from spectro.pool import WorkerPool, make_executor_factory


async def run(args: argparse.Namespace) -> None:
    options = SpectrogramOptions(
        sample_rate=args.sample_rate,
        window_size=args.window_size,
        scale=args.scale,
    )
    tone = sine_wave(440.0, args.sample_rate, duration_s=args.duration)

    async with WorkerPool(
        size=args.pool_size,
        executor_factory=make_executor_factory(args.executor),
    ) as pool:
        print(f"Pool: {pool.size} {args.executor} slots")

        async def one() -> float:
            started = time.perf_counter()
            await pool.compute_spectrogram(tone.copy(), 0, len(tone), options)
            return time.perf_counter() - started

        wall = time.perf_counter()
        latencies = await asyncio.gather(*(one() for _ in range(args.tasks)))
        wall = time.perf_counter() - wall

    lat_ms = np.array(latencies) * 1000
    print(f"Tasks: {args.tasks} in {wall:.2f}s ({args.tasks / wall:.1f}/s)")
    print(
        "Latency ms: "
        f"p50={np.percentile(lat_ms, 50):.1f} "
        f"p90={np.percentile(lat_ms, 90):.1f} "
        f"max={lat_ms.max():.1f}"
    )


def main() -> None:
    ap = argparse.ArgumentParser(description="Worker pool throughput benchmark")
    ap.add_argument("--tasks", type=int, default=32)
    ap.add_argument("--pool-size", type=int, default=None, help="Default: CPU count")
    ap.add_argument("--executor", choices=["process", "thread"], default="process")
    ap.add_argument("--sample-rate", type=int, default=44100)
    ap.add_argument("--duration", type=float, default=1.0, help="Seconds of audio per task")
    ap.add_argument("--window-size", type=int, default=4096)
    ap.add_argument("--scale", choices=["linear", "mel"], default="mel")
    asyncio.run(run(ap.parse_args()))


if __name__ == "__main__":
    main()
