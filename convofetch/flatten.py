"""
Flattening of recordings payloads into output rows.

A payload is the JSON array returned by the recordings endpoint. Each
recording with a messaging transcript becomes one row per message; the first
row carries the conversation id and start/end times, the rest leave them
blank so a conversation reads as one group in the output table.
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List

from .models import FlatRow, Success

ERROR_MARKER = "ERROR"

_FRACTION = re.compile(r"\.(\d+)")


class PayloadError(ValueError):
    """Raised when a response body is not a usable recordings payload."""
    pass


def _lower_keys(obj: Dict[str, Any]) -> Dict[str, Any]:
    # Field names are matched case-insensitively
    return {str(k).lower(): v for k, v in obj.items()}


def _text(value: Any, field: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    raise PayloadError(f"Field '{field}' must be a string, got {type(value).__name__}")


def _timestamp(value: Any, field: str) -> str:
    """Parse an ISO-8601 timestamp and write it back in canonical form.

    Fractions are cut or padded to microseconds and a trailing Z becomes
    +00:00, so values with 7-digit .NET fractions parse on 3.10.
    """
    text = _text(value, field).strip()
    if not text:
        return ""
    normalized = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    if normalized[-1] in "zZ":
        normalized = normalized[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(normalized).isoformat()
    except ValueError as e:
        raise PayloadError(f"Field '{field}' is not an ISO-8601 timestamp: {text!r}") from e


def escape_text(text: str) -> str:
    """Double embedded quotes. Commas and newlines are left as-is."""
    return text.replace('"', '""')


def parse_payload(raw_payload: str) -> List[Dict[str, Any]]:
    """
    Parse a recordings response body into a list of recording records.

    Returns an empty list for an empty body, a JSON null, or an upstream
    error marker. Raises PayloadError for anything that is not a JSON array
    of objects.
    """
    if raw_payload is None or not raw_payload.strip() or raw_payload.startswith(ERROR_MARKER):
        return []
    try:
        data = json.loads(raw_payload)
    except json.JSONDecodeError as e:
        raise PayloadError(f"Invalid JSON: {e}") from e
    if data is None:
        return []
    if not isinstance(data, list):
        raise PayloadError(f"Expected a JSON array, got {type(data).__name__}")
    records = []
    for item in data:
        if not isinstance(item, dict):
            raise PayloadError(f"Expected recording objects, got {type(item).__name__}")
        records.append(_lower_keys(item))
    return records


def flatten_records(records: Iterable[Dict[str, Any]]) -> List[FlatRow]:
    rows = []
    for record in records:
        messages = record.get("messagingtranscript") or []
        if not isinstance(messages, list):
            raise PayloadError("Field 'messagingTranscript' must be an array")
        if not messages:
            continue

        conversation_id = _text(record.get("conversationid"), "conversationId")
        start_time = _timestamp(record.get("starttime"), "startTime")
        end_time = _timestamp(record.get("endtime"), "endTime")

        for index, message in enumerate(messages):
            if not isinstance(message, dict):
                raise PayloadError("Transcript messages must be objects")
            message = _lower_keys(message)
            fields = dict(
                event_timestamp=_timestamp(message.get("timestamp"), "timestamp"),
                event_purpose=_text(message.get("purpose"), "purpose"),
                event_text=escape_text(_text(message.get("messagetext"), "messageText")),
            )
            if index == 0:
                rows.append(FlatRow(conversation_id, start_time, end_time, **fields))
            else:
                rows.append(FlatRow(**fields))
    return rows


def flatten(raw_payload: str) -> List[FlatRow]:
    """
    Turn one response body into output rows.

    Pure and non-raising: a payload that cannot be parsed yields no rows.
    Use ``flatten_batch`` to get a diagnostic row for such payloads.
    """
    try:
        return flatten_records(parse_payload(raw_payload))
    except PayloadError:
        return []


def diagnostic_row(identifier: str, error: Exception) -> FlatRow:
    """Placeholder row recording that a payload could not be flattened."""
    return FlatRow(entity_id=identifier, start_time=ERROR_MARKER, end_time=escape_text(str(error)))


def flatten_batch(batch: Iterable[Success]) -> List[FlatRow]:
    """Flatten a batch of successes, substituting a diagnostic row for bad payloads."""
    rows: List[FlatRow] = []
    for success in batch:
        try:
            rows.extend(flatten_records(parse_payload(success.payload)))
        except PayloadError as e:
            rows.append(diagnostic_row(success.identifier, e))
    return rows
