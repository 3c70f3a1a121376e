"""
Value types passed between the fetch, batching and writing stages.
"""

from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class Success:
    """A fetch that returned a 2xx response; ``payload`` is the raw body."""
    identifier: str
    payload: str


@dataclass(frozen=True)
class Failure:
    """A fetch that ended without a usable response."""
    identifier: str
    reason: str
    # Short label used for metrics, e.g. "HTTP_404", "max_retries", "exception"
    error_type: str = "error"


FetchOutcome = Union[Success, Failure]


# Output column order; also the header line of the output table.
COLUMNS = ("entityId", "startTime", "endTime", "eventTimestamp", "eventPurpose", "eventText")


@dataclass(frozen=True)
class FlatRow:
    """One line of the output table.

    Continuation rows of a multi-message conversation leave the entity-level
    fields (entity_id, start_time, end_time) blank.
    """
    entity_id: str = ""
    start_time: str = ""
    end_time: str = ""
    event_timestamp: str = ""
    event_purpose: str = ""
    event_text: str = ""

    def values(self) -> Tuple[str, ...]:
        return (
            self.entity_id,
            self.start_time,
            self.end_time,
            self.event_timestamp,
            self.event_purpose,
            self.event_text,
        )
