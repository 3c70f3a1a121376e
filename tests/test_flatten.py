"""
Tests for payload flattening.
"""

import json

import pytest

from convofetch.flatten import (
    PayloadError,
    escape_text,
    flatten,
    flatten_batch,
    flatten_records,
    parse_payload,
)
from convofetch.models import FlatRow, Success
from fakes import make_payload


class TestFlatten:
    """Test row grouping for a single payload."""

    def test_first_row_carries_conversation_fields(self, recording_payload):
        rows = flatten(recording_payload)

        assert rows[0] == FlatRow(
            "conv-a",
            "2024-03-01T10:00:00+00:00",
            "2024-03-01T10:05:00+00:00",
            "2024-03-01T10:00:01+00:00",
            "customer",
            "Hi, my order is late",
        )

    def test_continuation_rows_leave_conversation_fields_blank(self, recording_payload):
        rows = flatten(recording_payload)

        assert len(rows) == 2
        assert rows[1].entity_id == ""
        assert rows[1].start_time == ""
        assert rows[1].end_time == ""
        assert rows[1].event_purpose == "agent"

    def test_n_messages_produce_n_rows_in_order(self):
        texts = [f"message {i}" for i in range(7)]
        rows = flatten(make_payload("conv-x", texts))

        assert [r.event_text for r in rows] == texts
        assert rows[0].entity_id == "conv-x"
        assert all(r.entity_id == "" for r in rows[1:])

    def test_quotes_doubled(self, recording_payload):
        rows = flatten(recording_payload)
        assert rows[1].event_text == 'Sorry to hear that, ""checking"" now'

    def test_commas_and_newlines_left_alone(self):
        assert escape_text("a, b\nc") == "a, b\nc"

    def test_case_insensitive_fields(self):
        payload = json.dumps([{
            "CONVERSATIONID": "conv-b",
            "StartTime": "2024-01-01T00:00:00Z",
            "endtime": "2024-01-01T00:10:00Z",
            "MessagingTranscript": [
                {"TimeStamp": "2024-01-01T00:00:05Z", "PURPOSE": "agent", "messagetext": "hello"},
            ],
        }])
        rows = flatten(payload)

        assert rows == [FlatRow("conv-b", "2024-01-01T00:00:00+00:00", "2024-01-01T00:10:00+00:00",
                                "2024-01-01T00:00:05+00:00", "agent", "hello")]

    def test_records_without_messages_are_skipped(self):
        payload = json.dumps([
            {"conversationId": "no-transcript", "startTime": "t0", "endTime": "t1"},
            {"conversationId": "empty", "messagingTranscript": []},
            json.loads(make_payload("has-one", ["hi"]))[0],
        ])
        rows = flatten(payload)

        assert [r.entity_id for r in rows] == ["has-one"]

    def test_each_recording_starts_its_own_group(self):
        payload = json.dumps(
            json.loads(make_payload("c1", ["a", "b"])) + json.loads(make_payload("c2", ["c"]))
        )
        rows = flatten(payload)

        assert [r.entity_id for r in rows] == ["c1", "", "c2"]

    def test_missing_message_fields_are_blank(self):
        payload = json.dumps([{"conversationId": "c", "messagingTranscript": [{}]}])
        assert flatten(payload) == [FlatRow("c")]

    @pytest.mark.parametrize("raw", ["", "   \n", "null", "[]", "ERROR: 404 - Not Found"])
    def test_empty_payloads_produce_no_rows(self, raw):
        assert flatten(raw) == []

    @pytest.mark.parametrize("raw", ["{not json", '{"a": 1}', "[1, 2]", '[{"messagingTranscript": "x"}]'])
    def test_bad_payloads_produce_no_rows_without_raising(self, raw):
        assert flatten(raw) == []

    @pytest.mark.parametrize("raw, expected", [
        ("2024-03-01T10:00:00Z", "2024-03-01T10:00:00+00:00"),
        ("2024-03-01T10:00:00.000Z", "2024-03-01T10:00:00+00:00"),
        ("2024-03-01T10:00:00.1234567Z", "2024-03-01T10:00:00.123456+00:00"),
        ("2024-03-01T10:00:00.5+02:00", "2024-03-01T10:00:00.500000+02:00"),
        ("2024-03-01T10:00:00", "2024-03-01T10:00:00"),
    ])
    def test_timestamps_are_normalized(self, raw, expected):
        payload = json.dumps([{
            "conversationId": "c",
            "startTime": raw,
            "messagingTranscript": [{"timestamp": raw}],
        }])
        row = flatten(payload)[0]

        assert row.start_time == expected
        assert row.event_timestamp == expected

    def test_unparseable_timestamp_raises(self):
        payload = json.dumps([{
            "conversationId": "c",
            "messagingTranscript": [{"timestamp": "not-a-time"}],
        }])
        with pytest.raises(PayloadError, match="timestamp"):
            flatten_records(parse_payload(payload))

    def test_parse_payload_raises_for_bad_json(self):
        with pytest.raises(PayloadError, match="Invalid JSON"):
            parse_payload("{oops")


class TestFlattenBatch:
    """Test diagnostic rows at the batch call site."""

    def test_bad_payload_becomes_single_diagnostic_row(self, recording_payload):
        batch = [Success("good", recording_payload), Success("broken", "<html>gateway</html>")]
        rows = flatten_batch(batch)

        assert len(rows) == 3
        diagnostic = rows[2]
        assert diagnostic.entity_id == "broken"
        assert diagnostic.start_time == "ERROR"
        assert "Invalid JSON" in diagnostic.end_time
        assert diagnostic.event_text == ""

    def test_empty_payload_has_no_diagnostic(self):
        assert flatten_batch([Success("blank", "  ")]) == []

    def test_unparseable_timestamps_become_diagnostic_row(self):
        payload = json.dumps([{
            "conversationId": "c",
            "startTime": "next tuesday",
            "endTime": "2024-03-01T10:05:00Z",
            "messagingTranscript": [{"timestamp": "not-a-time", "purpose": "agent", "messageText": "hi"}],
        }])
        rows = flatten_batch([Success("c", payload)])

        assert len(rows) == 1
        assert rows[0].entity_id == "c"
        assert rows[0].start_time == "ERROR"
        assert "startTime" in rows[0].end_time
        assert "next tuesday" in rows[0].end_time
