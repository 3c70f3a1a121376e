"""
Pytest configuration and shared fixtures.
"""

import json

import pytest

from convofetch.logger import StructuredLogger, get_logger, reset_logger
from fakes import RecordingSleep


@pytest.fixture(autouse=True)
def quiet_logger(tmp_path) -> StructuredLogger:
    """Fresh global logger per test, writing only to a temp log dir."""
    reset_logger()
    logger = get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield logger
    reset_logger()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def recording_payload() -> str:
    """Recordings response with one two-message conversation."""
    return json.dumps([
        {
            "id": "rec-1",
            "conversationId": "conv-a",
            "startTime": "2024-03-01T10:00:00.000Z",
            "endTime": "2024-03-01T10:05:00.000Z",
            "media": "message",
            "messagingTranscript": [
                {
                    "timestamp": "2024-03-01T10:00:01.000Z",
                    "purpose": "customer",
                    "messageText": "Hi, my order is late",
                },
                {
                    "timestamp": "2024-03-01T10:01:30.000Z",
                    "purpose": "agent",
                    "messageText": "Sorry to hear that, \"checking\" now",
                },
            ],
        }
    ])


@pytest.fixture
def config_file(tmp_path):
    """Config JSON pointing at temp input/output tables."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "inputCsvPath": str(tmp_path / "input.csv"),
        "outputCsvPath": str(tmp_path / "out" / "transcripts.csv"),
        "bearerToken": "secret-token-value",
        "baseApiUrl": "https://api.example.com/",
    }))
    return path
