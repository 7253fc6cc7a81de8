#!/usr/bin/env python3
"""Stream audio files to the spectro WebSocket endpoint.

Sends several files in parallel, checks that every stream returns the
expected number of windows, and reports per-stream latency.

Usage:
    uv run scripts/ws_stream.py --uri ws://localhost:8000/v1/stream a.wav b.wav --concurrency 4

Dependencies:
    uv pip install -e ".[scripts]"
"""

import argparse
import asyncio
import json
import math
import sys
import time
from pathlib import Path
from urllib.parse import urlencode

import soundfile as sf
import websockets

from spectro.audio import chunk_samples, duration_samples, float32_to_bytes


def wav_to_float32_chunks(wav_path: Path, chunk_ms: int) -> tuple[int, list[bytes]]:
    """Load a mono WAV and split it into little-endian float32 chunks."""
    audio, sr = sf.read(str(wav_path), dtype="float32", always_2d=False)
    if audio.ndim != 1:
        raise ValueError(f"{wav_path} must be mono")

    chunk_size = duration_samples(chunk_ms, sr)
    return sr, [float32_to_bytes(c) for c in chunk_samples(audio, chunk_size)]


async def run_one(
    uri: str,
    wav_path: Path,
    chunk_ms: int,
    window_size: int,
    window_step_size: int,
    realtime: bool = False,
) -> tuple[str, bool, int, int, float]:
    """Run a single WebSocket stream and return results."""
    sr, chunks = wav_to_float32_chunks(wav_path, chunk_ms)
    total_samples = sum(len(c) for c in chunks) // 4
    query = urlencode(
        {"sampleRate": sr, "windowSize": window_size, "windowStepSize": window_step_size}
    )
    windows = 0
    errors = 0
    started = time.perf_counter()

    async with websockets.connect(f"{uri}?{query}", max_size=2**26) as ws:

        async def sender():
            for chunk in chunks:
                await ws.send(chunk)
                if realtime:
                    await asyncio.sleep(chunk_ms / 1000.0)
            await ws.send(b"EOS")

        async def receiver():
            nonlocal windows, errors
            while True:
                data = json.loads(await ws.recv())
                if "error" in data:
                    errors += 1
                windows += data.get("windowCount", 0)
                if data.get("status") == "complete":
                    break

        await asyncio.gather(sender(), receiver())

    elapsed = time.perf_counter() - started
    steps = window_size // window_step_size
    expected = math.ceil(total_samples / window_step_size) + steps - 1 if total_samples else 0
    return wav_path.name, windows == expected and errors == 0, windows, expected, elapsed


async def main() -> None:
    ap = argparse.ArgumentParser(description="WebSocket spectrogram stream test")
    ap.add_argument("files", nargs="+", help="Mono WAV files to stream")
    ap.add_argument(
        "--uri",
        default="ws://localhost:8000/v1/stream",
        help="WebSocket URI",
    )
    ap.add_argument("--concurrency", type=int, default=4, help="Number of concurrent streams")
    ap.add_argument("--chunk-ms", type=int, default=100, help="Audio chunk size in milliseconds")
    ap.add_argument("--window-size", type=int, default=4096)
    ap.add_argument("--window-step-size", type=int, default=1024)
    ap.add_argument(
        "--realtime",
        action="store_true",
        help="Send audio at real-time pace",
    )
    args = ap.parse_args()

    paths = [Path(f) for f in args.files]
    missing = [p for p in paths if not p.exists()]
    if missing:
        print(f"Error: not found: {', '.join(map(str, missing))}")
        sys.exit(1)

    # Cycle files if fewer than concurrency
    jobs = [paths[i % len(paths)] for i in range(args.concurrency)]

    print(f"Running {args.concurrency} concurrent streams...")
    print(f"URI: {args.uri}")
    print(f"Chunk size: {args.chunk_ms}ms")
    print()

    results = await asyncio.gather(
        *(
            run_one(args.uri, p, args.chunk_ms, args.window_size, args.window_step_size, args.realtime)
            for p in jobs
        )
    )

    failed = 0
    for name, ok, windows, expected, elapsed in results:
        status = "OK" if ok else "FAIL"
        print(f"{name}: {status}  windows={windows}/{expected}  {elapsed:.2f}s")
        if not ok:
            failed += 1

    print()
    print(f"Results: {len(results) - failed} passed, {failed} failed out of {len(results)}")
    if failed:
        sys.exit(2)


if __name__ == "__main__":
    asyncio.run(main())
