"""Command line entry point.

    spectro serve --port 8000
    spectro compute samples.f32 --sample-rate 44100 --scale linear -o out.npy
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

import numpy as np

from spectro.audio import bytes_to_float32
from spectro.errors import SpectroError
from spectro.options import SpectrogramOptions
from spectro.pool import WorkerPool
from spectro.settings import configure_logging, load_settings

logger = logging.getLogger(__name__)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from spectro.server import create_app

    settings = load_settings()
    if args.pool_size:
        settings = replace(settings, pool_size=args.pool_size)
    uvicorn.run(create_app(settings=settings), host=args.host, port=args.port)
    return 0


async def _compute(args: argparse.Namespace) -> int:
    samples = bytes_to_float32(Path(args.input).read_bytes())
    options = SpectrogramOptions(
        sample_rate=args.sample_rate,
        window_size=args.window_size,
        window_step_size=args.window_step_size,
        scale=args.scale,
        scale_size=args.scale_size,
        min_frequency_hz=args.min_frequency,
        max_frequency_hz=args.max_frequency,
        is_start=True,
        is_end=True,
    )

    async with WorkerPool(size=1) as pool:
        result = await pool.compute_spectrogram(samples, 0, len(samples), options)

    np.save(args.output, result.as_matrix())
    logger.info(
        "Wrote %d windows x %d buckets to %s",
        result.window_count,
        result.options.scale_size,
        args.output,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spectro", description="Spectrogram service")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--pool-size", type=int, default=None, help="Worker slots (default: CPU count)")

    compute = sub.add_parser("compute", help="Compute the spectrogram of a raw float32 file")
    compute.add_argument("input", help="Raw little-endian float32 mono samples")
    compute.add_argument("-o", "--output", default="spectrogram.npy")
    compute.add_argument("--sample-rate", type=float, required=True)
    compute.add_argument("--window-size", type=int, default=4096)
    compute.add_argument("--window-step-size", type=int, default=None)
    compute.add_argument("--scale", choices=["linear", "mel"], default="mel")
    compute.add_argument("--scale-size", type=int, default=None)
    compute.add_argument("--min-frequency", type=float, default=None, help="Hz")
    compute.add_argument("--max-frequency", type=float, default=None, help="Hz")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(load_settings().log_level)

    if args.command == "serve":
        return _serve(args)

    try:
        return asyncio.run(_compute(args))
    except SpectroError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
