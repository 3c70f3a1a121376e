"""
Runs a fetch for every identifier with a fixed number in flight.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional

from .logger import StructuredLogger, get_logger
from .models import Failure, FetchOutcome

# Maximum number of fetches in flight at once
CONCURRENCY_LIMIT = 5

FetchFunc = Callable[[str], Awaitable[FetchOutcome]]
OutcomeHandler = Callable[[FetchOutcome], Awaitable[None]]


class BoundedDispatcher:
    """
    Dispatches one fetch per identifier behind an ``asyncio.Semaphore``.

    Every identifier yields exactly one outcome, including duplicates. A
    fetch that raises is recorded as a ``Failure`` and the run continues.

    Usage:
        >>> dispatcher = BoundedDispatcher(fetcher.fetch)
        >>> outcomes = await dispatcher.run(ids, on_outcome=accumulator.handle)
    """

    def __init__(
        self,
        fetch: FetchFunc,
        concurrency_limit: int = CONCURRENCY_LIMIT,
        logger: Optional[StructuredLogger] = None,
    ):
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        self.fetch = fetch
        self.concurrency_limit = concurrency_limit
        self.logger = logger or get_logger()

    async def run(
        self,
        identifiers: Iterable[str],
        on_outcome: Optional[OutcomeHandler] = None,
    ) -> List[FetchOutcome]:
        """
        Fetch every identifier and return the outcomes in input order.

        Args:
            identifiers: Conversation identifiers, duplicates allowed
            on_outcome: Awaited once per outcome, after the fetch has left
                the admission gate

        Returns:
            One outcome per identifier
        """
        gate = asyncio.Semaphore(self.concurrency_limit)

        async def dispatch(identifier: str) -> FetchOutcome:
            async with gate:
                try:
                    outcome = await self.fetch(identifier)
                except Exception as e:
                    self.logger.error(f"{identifier} failed: {e}")
                    outcome = Failure(identifier, f"exception - {e}", "exception")
            if on_outcome is not None:
                try:
                    await on_outcome(outcome)
                except Exception as e:
                    self.logger.error(
                        f"{identifier} - outcome handling failed: {e}",
                        error_type=type(e).__name__,
                    )
            return outcome

        return list(await asyncio.gather(*(dispatch(i) for i in identifiers)))
