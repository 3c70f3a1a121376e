"""
Recordings API fetcher with retry and backoff.

One call to ``RecordingsFetcher.fetch`` is one logical fetch for one
conversation: it keeps retrying rate-limited and gateway errors until the API
answers, a terminal status comes back, or the retry budget runs out.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import requests

from .logger import StructuredLogger, get_logger
from .models import Failure, FetchOutcome, Success
from .retry import (
    MAX_RETRIES,
    RetryState,
    backoff_delay,
    is_transient_error,
    parse_retry_after,
    should_retry_http_status,
)

RESOURCE_PATH = "api/v2/conversations/{identifier}/recordings"

# Same as the default timeout of the .NET HttpClient the tool was first built on
REQUEST_TIMEOUT = 100


def build_recordings_url(base_url: str, identifier: str) -> str:
    return f"{base_url.rstrip('/')}/{RESOURCE_PATH.format(identifier=identifier)}"


class RecordingsFetcher:
    """
    Fetches the recordings payload for a conversation.

    The blocking ``requests`` call runs on a worker thread and every wait
    goes through ``sleep`` (``asyncio.sleep`` by default), so a fetch that is
    backing off never holds up the event loop.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        timeout: float = REQUEST_TIMEOUT,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            base_url: API origin, e.g. https://api.mypurecloud.com
            auth_token: Bearer token sent with every request
            session: requests session to reuse (a new one is created if None)
            sleep: Coroutine function used for retry waits
            clock: Monotonic clock in seconds, used for the backoff tiers
            timeout: Per-request timeout in seconds
            logger: Logger for progress lines and metrics
        """
        self.base_url = base_url
        self.session = session or requests.Session()
        self.sleep = sleep
        self.clock = clock
        self.timeout = timeout
        self.logger = logger or get_logger()
        self._headers = {
            "Authorization": f"Bearer {auth_token}",
            "Accept": "application/json",
        }

    def _send(self, url: str) -> requests.Response:
        return self.session.get(url, headers=self._headers, timeout=self.timeout)

    async def fetch(self, identifier: str) -> FetchOutcome:
        """Fetch one conversation. Never raises; failures come back as ``Failure``."""
        url = build_recordings_url(self.base_url, identifier)
        state = RetryState()
        self.logger.record_fetch_attempt()

        while True:
            self.logger.record_api_call()
            try:
                response = await asyncio.to_thread(self._send, url)
            except Exception as e:
                if not is_transient_error(e):
                    return self._fail(identifier, f"exception - {e}", "exception")
                state.register_retry(self.clock())
                if state.exhausted:
                    return self._fail(identifier, f"exception - {e}", "exception")
                delay = backoff_delay(state.elapsed(self.clock()))
                self.logger.warning(
                    f"{identifier} - Exception: {e}. Retrying in {delay}s",
                    attempt=state.attempts,
                )
                await self._wait(state, delay)
                continue

            status = response.status_code
            if 200 <= status < 300:
                count = self.logger.record_fetch_success()
                self.logger.info(f"#{count} - {identifier} - Success")
                return Success(identifier, response.text)

            if not should_retry_http_status(status):
                return self._fail(identifier, f"{status} - {response.text}", f"HTTP_{status}")

            state.register_retry(self.clock())
            if state.exhausted:
                return self._fail(
                    identifier, f"max retries reached - {status}", "max_retries"
                )

            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is not None:
                self.logger.info(f"{identifier} - Retry-After {retry_after}s", status=status)
                await self._wait(state, retry_after)
                continue

            delay = backoff_delay(state.elapsed(self.clock()))
            self.logger.info(
                f"{identifier} - Retry {state.attempts}/{MAX_RETRIES} in {delay}s ({status})"
            )
            await self._wait(state, delay)

    async def _wait(self, state: RetryState, delay: float) -> None:
        state.last_delay = delay
        self.logger.record_retry()
        await self.sleep(delay)

    def _fail(self, identifier: str, reason: str, error_type: str) -> Failure:
        self.logger.record_fetch_failure(error_type)
        self.logger.error(f"{identifier} - Failed", reason=reason)
        return Failure(identifier, reason, error_type)
