"""
Tests for the payload log sink.

Usage:
    pytest src/test_command_logger.py -v
"""

import logging

import pytest

from src.middleware.command_logger import StructuredLogSink


@pytest.fixture
def sink():
    return StructuredLogSink(logging.getLogger("test.command_logger"))


def test_command_fields_are_logged(sink, caplog):
    with caplog.at_level(logging.INFO, logger="test.command_logger"):
        sink.log_command({
            "command": "/standup",
            "user_id": "U1",
            "team_id": "T1",
            "text": "done",
            "token": "xoxb-secret",
        })

    record = caplog.records[-1]
    assert record.slack_payload == "command"
    assert record.slack_command == "/standup"
    assert record.slack_user_id == "U1"
    assert record.slack_team_id == "T1"
    assert "xoxb-secret" not in record.getMessage()


def test_event_flattens_nested_ids(sink, caplog):
    with caplog.at_level(logging.INFO, logger="test.command_logger"):
        sink.log("event", {"type": "app_home_opened", "user": {"id": "U1"}, "view": {"id": "V1"}})

    record = caplog.records[-1]
    assert record.slack_type == "app_home_opened"
    assert record.slack_user == "U1"
    assert record.slack_view_id == "V1"


def test_view_logs_state_block_ids_only(sink, caplog):
    view = {
        "callback_id": "standup_modal",
        "id": "V1",
        "state": {"values": {"yesterday": {"input": {"value": "private notes"}}}},
    }
    with caplog.at_level(logging.INFO, logger="test.command_logger"):
        sink.log("view", view)

    record = caplog.records[-1]
    assert record.slack_state == ["yesterday"]
    assert "private notes" not in record.getMessage()


@pytest.mark.parametrize("kind", ["command", "message", "event", "action", "view"])
def test_dispatch_accepts_every_kind(sink, caplog, kind):
    with caplog.at_level(logging.INFO, logger="test.command_logger"):
        sink.log(kind, {})
    assert caplog.records[-1].slack_payload == kind


def test_unknown_kind_is_rejected(sink):
    with pytest.raises(ValueError):
        sink.log("shortcut", {})
