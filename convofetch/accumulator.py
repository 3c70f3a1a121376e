"""
Batch accumulation for successful fetches.

Successes are buffered and handed to a sink in batches of ``BATCH_SIZE``.
Two locks are involved:

- ``_buffer_lock`` covers only append / swap / clear of the buffer, so
  fetch completions are never held up by disk I/O.
- ``_flush_lock`` serializes the sink calls, so lines of two batches never
  interleave in the output table.
"""

import asyncio
from typing import Callable, List, Optional, Sequence

from .logger import StructuredLogger, get_logger
from .models import FetchOutcome, Success

# Successes per write to the output table
BATCH_SIZE = 10

# Writes a batch and returns the number of rows written. Runs on a worker thread.
BatchSink = Callable[[Sequence[Success]], int]


class BatchAccumulator:
    """
    Buffers ``Success`` outcomes and flushes them through ``sink``.

    Thread Safety:
    - Safe for concurrent ``offer`` calls from tasks on one event loop
    - Each entry is flushed exactly once

    Usage:
        >>> acc = BatchAccumulator(sink)
        >>> await acc.offer(success)
        >>> await acc.drain()
    """

    def __init__(
        self,
        sink: BatchSink,
        batch_size: int = BATCH_SIZE,
        logger: Optional[StructuredLogger] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.sink = sink
        self.batch_size = batch_size
        self.logger = logger or get_logger()

        self._buffer: List[Success] = []
        self._buffer_lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()

    @property
    def pending(self) -> int:
        """Number of buffered entries not yet flushed."""
        return len(self._buffer)

    async def handle(self, outcome: FetchOutcome) -> None:
        """Outcome callback for the dispatcher: buffer successes, drop failures."""
        if isinstance(outcome, Success):
            await self.offer(outcome)
        else:
            self.logger.debug(f"{outcome.identifier} - excluded from output", reason=outcome.reason)

    async def offer(self, success: Success) -> None:
        """Buffer one success, flushing when the batch is full."""
        batch = None
        async with self._buffer_lock:
            self._buffer.append(success)
            if len(self._buffer) >= self.batch_size:
                batch = self._swap()
        if batch:
            await self._flush(batch)

    async def drain(self) -> None:
        """Flush whatever is left in the buffer. No-op when empty."""
        async with self._buffer_lock:
            batch = self._swap()
        if batch:
            await self._flush(batch)

    def _swap(self) -> List[Success]:
        # Caller holds _buffer_lock
        batch, self._buffer = self._buffer, []
        return batch

    async def _flush(self, batch: List[Success]) -> None:
        async with self._flush_lock:
            try:
                rows = await asyncio.to_thread(self.sink, batch)
            except Exception as e:
                self.logger.record_flush_failure()
                self.logger.error(
                    f"Failed to save batch of {len(batch)}: {e}",
                    identifiers=[s.identifier for s in batch],
                    error_type=type(e).__name__,
                )
                return
            self.logger.record_flush(rows)
            self.logger.info(f"Saved batch of {len(batch)} ({rows} rows)")
