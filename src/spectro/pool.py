"""Fixed-size worker pool for off-loop spectrogram computation.

Each slot owns a single-worker executor (one process by default), so a
slot is one independent, internally single-threaded execution context.
Callers acquire a slot, send it one request, and release it when the one
response arrives. When every slot is busy, callers queue FIFO and a
released slot is handed straight to the oldest waiter.

All bookkeeping happens on the event loop thread; nothing here is
thread-safe and nothing needs to be.
"""

import asyncio
import functools
import logging
import os
from collections import deque
from collections.abc import Callable
from concurrent.futures import BrokenExecutor, Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from spectro.audio import TransferBuffer, bytes_to_float32
from spectro.constants import ACTION_COMPUTE_SPECTROGRAM, ACTION_WARMUP, DEFAULT_POOL_SIZE
from spectro.engine.protocol import Engine
from spectro.engine.spectrogram import SpectrogramEngine
from spectro.errors import ComputationError, PoolClosedError, PoolIntegrityError
from spectro.options import PooledSpectrogramResult, SpectrogramOptions
from spectro.protocol import make_request, unwrap_response
from spectro.worker import handle_message

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[], Executor]


def default_pool_size() -> int:
    """Hardware parallelism, or DEFAULT_POOL_SIZE when it cannot be detected."""
    return os.cpu_count() or DEFAULT_POOL_SIZE


def make_executor_factory(kind: str) -> ExecutorFactory:
    """Return a factory for single-worker executors of the given kind.

    Args:
        kind: "process" for isolated worker processes, "thread" for
            in-process threads (tests, or engines that release the GIL).
    """
    if kind == "process":
        return functools.partial(ProcessPoolExecutor, max_workers=1)
    if kind == "thread":
        return functools.partial(ThreadPoolExecutor, max_workers=1)
    raise ValueError(f"Unknown executor kind: {kind!r}")


@dataclass(eq=False)
class WorkerSlot:
    """One execution context and whether it is lent out."""

    index: int
    executor: Executor = field(repr=False)
    busy: bool = False


class WorkerPool:
    """Dispatches engine work to a fixed set of worker slots.

    The pool is an explicit object: create one per application (or per
    test), ``await start()`` it, and ``await stop()`` it when done. It is
    also an async context manager.
    """

    def __init__(
        self,
        engine: Engine | None = None,
        size: int | None = None,
        executor_factory: ExecutorFactory | None = None,
        warmup: bool = True,
    ):
        """Initialize the pool.

        Args:
            engine: Engine shipped to workers with every request.
            size: Number of slots; defaults to the CPU count.
            executor_factory: Builds one single-worker executor per slot.
            warmup: Send a warmup request to every slot on start.
        """
        if size is not None and size < 1:
            raise ValueError("Pool size must be at least 1")
        self._engine = engine if engine is not None else SpectrogramEngine()
        self._size = size or default_pool_size()
        self._executor_factory = executor_factory or make_executor_factory("process")
        self._warmup = warmup
        self._slots: list[WorkerSlot] = []
        self._waiters: deque[asyncio.Future[WorkerSlot]] = deque()
        self._running = False

    async def __aenter__(self) -> "WorkerPool":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def start(self) -> None:
        """Create the slots and optionally warm every one of them up."""
        if self._running:
            return
        self._slots = [WorkerSlot(i, self._executor_factory()) for i in range(self._size)]
        self._running = True
        logger.info("Worker pool started with %d slots", self._size)

        if self._warmup:
            # Take every slot so each executor gets exactly one warmup.
            slots = [await self.acquire() for _ in range(self._size)]
            try:
                await asyncio.gather(*(self._send(slot, ACTION_WARMUP, {}) for slot in slots))
            except BaseException:
                logger.error("Worker pool warmup failed, shutting down")
                await self.stop()
                raise

    async def stop(self) -> None:
        """Fail pending waiters and shut the executors down.

        In-flight tasks are allowed to finish. The executors are shut down
        on worker threads so the event loop keeps running meanwhile.
        """
        if not self._running:
            return
        self._running = False
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(PoolClosedError("Worker pool stopped"))

        slots, self._slots = self._slots, []
        await asyncio.gather(
            *(asyncio.to_thread(slot.executor.shutdown, wait=True) for slot in slots)
        )
        logger.info("Worker pool stopped")

    async def acquire(self) -> WorkerSlot:
        """Return an idle slot, waiting in FIFO order if none is free."""
        if not self._running:
            raise PoolClosedError("Worker pool is not running")

        for slot in self._slots:
            if not slot.busy:
                slot.busy = True
                return slot

        waiter: asyncio.Future[WorkerSlot] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("All %d slots busy, %d waiting", self._size, len(self._waiters))
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Handed a slot just as we were cancelled: pass it on.
                self.release(waiter.result())
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self, slot: WorkerSlot) -> None:
        """Give a slot back, handing it directly to the oldest waiter if any.

        Raises:
            PoolIntegrityError: If the slot is not a busy slot of this pool.
        """
        if not any(s is slot for s in self._slots):
            raise PoolIntegrityError("Provided worker to release is not valid")
        if not slot.busy:
            raise PoolIntegrityError(f"Slot {slot.index} released while idle")

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                logger.debug("Handing slot %d to next waiter", slot.index)
                waiter.set_result(slot)
                return
        slot.busy = False

    def _release_after_response(self, slot: WorkerSlot) -> None:
        # A slot from before the last stop() no longer belongs to the pool.
        if any(s is slot for s in self._slots):
            self.release(slot)
        else:
            slot.busy = False

    async def dispatch(self, action: str, payload: dict[str, Any]) -> Any:
        """Run one request on a free slot and return the response payload.

        Raises:
            SpectroError: The error carried by the worker's response.
        """
        slot = await self.acquire()
        return await self._send(slot, action, payload)

    async def _send(self, slot: WorkerSlot, action: str, payload: dict[str, Any]) -> Any:
        """Send one request on an acquired slot; the slot is released on response."""
        loop = asyncio.get_running_loop()
        request = make_request(action, payload)
        try:
            response_future = loop.run_in_executor(
                slot.executor, handle_message, self._engine, request
            )
        except BaseException:
            self.release(slot)
            raise

        # Released only when the worker answers, even if the caller stops
        # waiting, so a slot never holds two requests.
        response_future.add_done_callback(lambda _: self._release_after_response(slot))
        try:
            response = await asyncio.shield(response_future)
        except BrokenExecutor as e:
            raise ComputationError(f"Worker slot {slot.index} died: {e}") from e
        return unwrap_response(response)

    async def compute_spectrogram(
        self,
        samples: np.ndarray | TransferBuffer,
        start: int,
        length: int,
        options: SpectrogramOptions,
    ) -> PooledSpectrogramResult:
        """Compute a spectrogram on a pool worker.

        Options are validated here, before a slot is taken. The samples are
        moved to the worker: a TransferBuffer is detached, and a plain array
        must not be used by the caller afterwards. The worker's copy comes
        back as ``result.input``.

        Raises:
            ValidationError: Synchronously, if the options are invalid.
        """
        resolved = options.resolve()
        buffer = samples if isinstance(samples, TransferBuffer) else TransferBuffer(samples)
        payload = {
            "samples_buffer": buffer.detach(),
            "samples_start": start,
            "samples_length": length,
            "options": resolved.to_wire(),
        }
        response = await self.dispatch(ACTION_COMPUTE_SPECTROGRAM, payload)

        return PooledSpectrogramResult(
            window_count=response["window_count"],
            options=SpectrogramOptions.from_wire(response["options"]),
            spectrogram=bytes_to_float32(response["spectrogram_buffer"]),
            input=bytes_to_float32(response["input_buffer"]),
        )

    @property
    def size(self) -> int:
        """Number of slots."""
        return self._size

    @property
    def busy_count(self) -> int:
        """Slots currently lent out."""
        return sum(1 for slot in self._slots if slot.busy)

    @property
    def waiting_count(self) -> int:
        """Callers waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    @property
    def is_running(self) -> bool:
        """Whether the pool has been started and not stopped."""
        return self._running
