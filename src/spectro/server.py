"""FastAPI server exposing spectrogram computation over HTTP and WebSocket.

It depends only on the Engine protocol and the WorkerPool, allowing use
with the real or the fake engine.
"""

import asyncio
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import replace

import numpy as np
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect

from spectro.audio import bytes_to_float32, pcm16_to_float32, validate_audio_format
from spectro.engine.protocol import Engine
from spectro.engine.spectrogram import SpectrogramEngine
from spectro.errors import ComputationError, SpectroError, ValidationError
from spectro.options import SpectrogramOptions, SpectrogramResult
from spectro.pool import WorkerPool, make_executor_factory
from spectro.settings import Settings

logger = logging.getLogger(__name__)

_INT_OPTIONS = {"windowSize", "windowStepSize", "scaleSize"}
_FLOAT_OPTIONS = {"sampleRate", "minFrequencyHz", "maxFrequencyHz"}
_BOOL_OPTIONS = {"isStart", "isEnd"}
_RESERVED_PARAMS = {"encoding"}


def options_from_query(params: Mapping[str, str], default_sample_rate: int) -> SpectrogramOptions:
    """Build resolved options from camelCase query parameters.

    Raises:
        ValidationError: On unknown names, unparseable values or invalid options.
    """
    data: dict = {"sampleRate": default_sample_rate}
    for key, raw in params.items():
        if key in _RESERVED_PARAMS:
            continue
        try:
            if key in _INT_OPTIONS:
                data[key] = int(raw)
            elif key in _FLOAT_OPTIONS:
                data[key] = float(raw)
            elif key in _BOOL_OPTIONS:
                data[key] = raw.strip().lower() in {"1", "true", "yes", "on"}
            else:
                data[key] = raw
        except ValueError as e:
            raise ValidationError(f"Invalid value for {key}: {raw!r}") from e
    return SpectrogramOptions.from_wire(data).resolve()


def decode_samples(data: bytes, encoding: str) -> np.ndarray:
    """Decode a request body as float32 ("f32") or PCM16 ("s16") samples."""
    if encoding == "s16":
        if len(data) % 2 != 0:
            raise ValueError("Invalid audio format (must be PCM16)")
        return pcm16_to_float32(data)
    if encoding == "f32":
        if not validate_audio_format(data):
            raise ValueError("Invalid audio format (must be float32)")
        return bytes_to_float32(data)
    raise ValueError(f"Unknown encoding: {encoding}")


class StreamSession:
    """Sample buffer for one streaming connection.

    Chunks are analysed as they arrive. The samples needed by the next
    window stay buffered between chunks so consecutive results line up
    window for window, as if the whole stream had been analysed at once.
    """

    def __init__(self, session_id: str, options: SpectrogramOptions):
        """Initialize a stream session.

        Args:
            session_id: Unique identifier for this session.
            options: Resolved options; is_start/is_end are managed per chunk.
        """
        self.session_id = session_id
        self.options = options
        self._buffer = np.zeros(0, dtype=np.float32)
        self._started = False

    @property
    def buffer_samples(self) -> int:
        """Current buffer size in samples."""
        return len(self._buffer)

    @property
    def started(self) -> bool:
        """Whether a chunk has already been analysed."""
        return self._started

    def append(self, samples: np.ndarray) -> None:
        self._buffer = np.concatenate([self._buffer, samples.astype(np.float32, copy=False)])

    def has_enough_data(self) -> bool:
        """Check if at least one full window is buffered."""
        return len(self._buffer) >= self.options.window_size

    def take_chunk(self) -> tuple[np.ndarray, SpectrogramOptions]:
        """Remove the samples covered by every full buffered window.

        Returns the samples to analyse and the options to analyse them with.
        Only call when has_enough_data() is true.
        """
        step = self.options.window_step_size
        count = (len(self._buffer) - self.options.window_size) // step + 1
        length = (count - 1) * step + self.options.window_size
        chunk = self._buffer[:length]
        options = replace(self.options, is_start=not self._started, is_end=False)
        self._buffer = self._buffer[count * step :]
        self._started = True
        return chunk, options

    def flush(self) -> tuple[np.ndarray, SpectrogramOptions]:
        """Return the remaining buffer for the final, end-padded analysis."""
        chunk = self._buffer
        options = replace(self.options, is_start=not self._started, is_end=True)
        self._buffer = np.zeros(0, dtype=np.float32)
        self._started = True
        return chunk, options


def create_app(
    engine: Engine | None = None,
    settings: Settings | None = None,
    use_pool: bool = True,
) -> FastAPI:
    """Create a FastAPI application with the given engine.

    Args:
        engine: Spectrogram engine (real or fake). Defaults to the numpy engine.
        settings: Pool and default-option configuration.
        use_pool: Dispatch to a WorkerPool; otherwise compute on the
            loop's default executor.

    Returns:
        Configured FastAPI application.
    """
    engine = engine if engine is not None else SpectrogramEngine()
    settings = settings or Settings()
    pool: WorkerPool | None = None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal pool
        if use_pool:
            pool = WorkerPool(
                engine,
                size=settings.pool_size,
                executor_factory=make_executor_factory(settings.executor),
                warmup=settings.warmup,
            )
            await pool.start()
        yield
        if pool:
            await pool.stop()
            pool = None

    app = FastAPI(title="Spectro Service", lifespan=lifespan)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "pool_size": pool.size if pool else 0,
            "busy": pool.busy_count if pool else 0,
            "executor": settings.executor if use_pool else "inline",
            "sample_rate": settings.sample_rate,
        }

    @app.post("/v1/spectrogram")
    async def spectrogram(request: Request):
        """Compute the spectrogram of a raw sample body.

        Options come from camelCase query parameters; ``encoding`` selects
        float32 ("f32", default) or PCM16 ("s16") input.
        """
        body = await request.body()
        try:
            samples = decode_samples(body, request.query_params.get("encoding", "f32"))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        try:
            options = options_from_query(request.query_params, settings.sample_rate)
            result = await _compute(samples, options, pool, engine)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        except SpectroError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        return _result_json(result)

    @app.websocket("/v1/stream")
    async def stream_spectrogram(websocket: WebSocket):
        """WebSocket endpoint for streaming analysis.

        Protocol:
        - Options are camelCase query parameters on the connect URL
        - Client sends binary sample chunks (float32 or ``encoding=s16``)
        - Client sends b"EOS" to signal end of stream
        - Server responds with JSON: {"windowCount": n, "spectrogram": [...], "final": bool}
        - Server sends {"status": "complete"} when done
        """
        await websocket.accept()
        encoding = websocket.query_params.get("encoding", "f32")
        try:
            options = options_from_query(websocket.query_params, settings.sample_rate)
        except ValidationError as e:
            await websocket.send_json({"error": str(e)})
            await websocket.close(code=1008)
            return

        session = StreamSession(str(id(websocket)), options)
        logger.info("Stream %s opened", session.session_id)

        try:
            while True:
                data = await websocket.receive_bytes()

                if data == b"EOS":
                    chunk, chunk_options = session.flush()
                    if len(chunk):
                        await _send_chunk(websocket, chunk, chunk_options, pool, engine, final=True)
                    await websocket.send_json({"status": "complete"})
                    break

                try:
                    samples = decode_samples(data, encoding)
                except ValueError as e:
                    await websocket.send_json({"error": str(e)})
                    continue

                session.append(samples)
                while session.has_enough_data():
                    chunk, chunk_options = session.take_chunk()
                    await _send_chunk(websocket, chunk, chunk_options, pool, engine, final=False)

        except WebSocketDisconnect:
            pass
        logger.info("Stream %s closed", session.session_id)

    return app


async def _compute(
    samples: np.ndarray,
    options: SpectrogramOptions,
    pool: WorkerPool | None,
    engine: Engine,
) -> SpectrogramResult:
    """Compute via the pool, or directly on the default executor."""
    if pool:
        return await pool.compute_spectrogram(samples, 0, len(samples), options)
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, engine.compute, samples, 0, len(samples), options)
    except SpectroError:
        raise
    except Exception as e:
        raise ComputationError(str(e)) from e


async def _send_chunk(
    websocket: WebSocket,
    samples: np.ndarray,
    options: SpectrogramOptions,
    pool: WorkerPool | None,
    engine: Engine,
    final: bool,
) -> None:
    try:
        result = await _compute(samples, options, pool, engine)
    except SpectroError as e:
        await websocket.send_json({"error": str(e)})
        return
    await websocket.send_json(
        {
            "windowCount": result.window_count,
            "spectrogram": result.spectrogram.tolist(),
            "final": final,
        }
    )


def _result_json(result: SpectrogramResult) -> dict:
    return {
        "windowCount": result.window_count,
        "scaleSize": result.options.scale_size,
        "options": result.options.to_wire(),
        "spectrogram": result.spectrogram.tolist(),
    }
