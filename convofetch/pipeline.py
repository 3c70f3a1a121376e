"""
End-to-end run: identifiers in, transcript rows out.

    input CSV -> BoundedDispatcher(RecordingsFetcher) -> BatchAccumulator
              -> flatten_batch -> output CSV
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import requests

from .accumulator import BATCH_SIZE, BatchAccumulator
from .config import Settings
from .dispatcher import CONCURRENCY_LIMIT, BoundedDispatcher
from .fetcher import RecordingsFetcher
from .inputs import read_identifiers
from .logger import StructuredLogger, get_logger
from .models import Success
from .writer import TableWriter


@dataclass(frozen=True)
class RunSummary:
    total: int
    succeeded: int
    failed: int
    rows_written: int
    batches_flushed: int
    failed_flushes: int


async def run_pipeline(
    settings: Settings,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    batch_size: int = BATCH_SIZE,
    concurrency_limit: int = CONCURRENCY_LIMIT,
    logger: Optional[StructuredLogger] = None,
) -> RunSummary:
    """
    Fetch every identifier in the input table and append rows to the output table.

    Raises:
        InputError: If the input table cannot be read (before any fetch)
    """
    logger = logger or get_logger()
    identifiers = read_identifiers(settings.input_path)
    logger.info(
        f"Loaded {len(identifiers)} conversation ids",
        input=str(settings.input_path),
        output=str(settings.output_path),
    )

    rows_before = logger.metrics["rows_written"]
    batches_before = logger.metrics["batches_flushed"]
    failed_flushes_before = logger.metrics["failed_flushes"]

    fetcher = RecordingsFetcher(
        settings.base_url,
        settings.auth_token,
        session=session,
        sleep=sleep,
        logger=logger,
    )
    writer = TableWriter(settings.output_path)
    accumulator = BatchAccumulator(writer.write_batch, batch_size=batch_size, logger=logger)
    dispatcher = BoundedDispatcher(fetcher.fetch, concurrency_limit=concurrency_limit, logger=logger)

    try:
        outcomes = await dispatcher.run(identifiers, on_outcome=accumulator.handle)
        await accumulator.drain()
    finally:
        if session is None:
            fetcher.session.close()

    succeeded = sum(1 for o in outcomes if isinstance(o, Success))
    return RunSummary(
        total=len(outcomes),
        succeeded=succeeded,
        failed=len(outcomes) - succeeded,
        rows_written=logger.metrics["rows_written"] - rows_before,
        batches_flushed=logger.metrics["batches_flushed"] - batches_before,
        failed_flushes=logger.metrics["failed_flushes"] - failed_flushes_before,
    )


def run(settings: Settings, **kwargs) -> RunSummary:
    """Synchronous entry point around ``run_pipeline``."""
    return asyncio.run(run_pipeline(settings, **kwargs))
