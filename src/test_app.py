"""
Tests for the Flask entry point, using Flask's test client.

Outbound calls to response_url are patched; the gate runs against the
in-memory repository.

Usage:
    pytest src/test_app.py -v
"""

import json
import time
from unittest.mock import Mock, patch
from urllib.parse import urlencode

import pytest
from slack_sdk.signature import SignatureVerifier

from src.app import create_app
from src.middleware import slack_parser
from src.middleware.authentication import AuthenticationGate
from src.middleware.command_logger import CommandLogSink
from src.middleware.request_context import get_current_auth
from src.middleware.slack_responder import SlackResponder
from src.repository.memory import InMemoryRepository

RESPONSE_URL = "https://hooks.slack.com/commands/T_ACME/1/abc"


@pytest.fixture
def repository():
    repo = InMemoryRepository()
    acme = repo.add_organization("T_ACME", "Acme")
    alice = repo.find_or_create_user("U_ALICE")
    repo.add_membership(acme.id, alice.id)
    return repo


@pytest.fixture
def sink():
    return Mock(spec=CommandLogSink)


@pytest.fixture
def handlers():
    def standup(ctx):
        auth = get_current_auth()
        ctx.respond({"text": f"Standup for {auth.organization.name}: {ctx.command.text}"})

    def approve(ctx):
        ctx.respond({"text": "approved"})

    def submit(ctx):
        ctx.respond({"response_action": "clear"})

    return {
        "commands": {"/standup": Mock(side_effect=standup)},
        "interactions": {"approve": Mock(side_effect=approve), "standup_modal": Mock(side_effect=submit)},
        "events": {"app_mention": Mock(), "message": Mock()},
    }


@pytest.fixture
def app(repository, sink, handlers):
    app = create_app(
        gate=AuthenticationGate(repository),
        sink=sink,
        command_handlers=handlers["commands"],
        interaction_handlers=handlers["interactions"],
        event_handlers=handlers["events"],
        verify_signatures=False,
        background_handlers=False,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def command_form(**overrides):
    form = {
        "command": "/standup",
        "text": "*shipped* the gate",
        "user_id": "U_ALICE",
        "user_name": "alice",
        "team_id": "T_ACME",
        "channel_id": "C1",
        "trigger_id": "trig",
    }
    form.update(overrides)
    return form


# ============================================================================
# Health
# ============================================================================

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


# ============================================================================
# Slash commands
# ============================================================================

def test_command_is_answered_in_body_without_response_url(client, handlers):
    response = client.post("/slack/commands", data=command_form())

    assert response.status_code == 200
    assert response.get_json() == {"text": "Standup for Acme: shipped the gate"}
    handlers["commands"]["/standup"].assert_called_once()


def test_command_response_goes_to_response_url(client):
    with patch("src.middleware.slack_responder.requests.post") as post:
        post.return_value = Mock(status_code=200)
        response = client.post(
            "/slack/commands", data=command_form(response_url=RESPONSE_URL), buffered=True
        )

    assert response.status_code == 200
    assert response.data == b""
    post.assert_called_once()
    assert post.call_args[0][0] == RESPONSE_URL
    assert post.call_args[1]["json"] == {"text": "Standup for Acme: shipped the gate"}


def test_unregistered_workspace_gets_lock_message(client, handlers, sink):
    response = client.post("/slack/commands", data=command_form(team_id="T_OTHER"))

    assert response.get_json() == {
        "text": "🔒 This workspace is not registered with Daily Dose. Please contact your administrator.",
        "response_type": "ephemeral",
    }
    handlers["commands"]["/standup"].assert_not_called()
    sink.log.assert_called_once()


def record_http_status(app, events):
    """Wrap the WSGI app so the status line is recorded when it is sent."""
    inner = app.wsgi_app

    def wsgi_app(environ, start_response):
        def recording_start_response(status, headers, exc_info=None):
            events.append(("http", status))
            return start_response(status, headers, exc_info)
        return inner(environ, recording_start_response)

    app.wsgi_app = wsgi_app


def test_handler_runs_after_the_ack_is_sent(app, handlers):
    events = []
    record_http_status(app, events)
    standup = handlers["commands"]["/standup"].side_effect
    handlers["commands"]["/standup"].side_effect = lambda ctx: (events.append(("handler",)), standup(ctx))

    with patch("src.middleware.slack_responder.requests.post") as post:
        post.side_effect = lambda url, json, timeout: events.append(("post", json["text"])) or Mock(status_code=200)
        app.test_client().post(
            "/slack/commands", data=command_form(response_url=RESPONSE_URL), buffered=True
        )

    assert events == [
        ("http", "200 OK"),
        ("handler",),
        ("post", "Standup for Acme: shipped the gate"),
    ]


def test_auth_failure_with_response_url_rides_in_the_ack(app, handlers):
    events = []
    record_http_status(app, events)

    with patch("src.middleware.slack_responder.requests.post") as post:
        response = app.test_client().post(
            "/slack/commands",
            data=command_form(team_id="T_OTHER", response_url=RESPONSE_URL),
            buffered=True,
        )

    post.assert_not_called()
    assert events == [("http", "200 OK")]
    assert response.get_json()["text"].startswith("🔒 This workspace is not registered")
    handlers["commands"]["/standup"].assert_not_called()


def test_handler_failure_after_the_ack_goes_to_response_url(client, handlers):
    handlers["commands"]["/standup"].side_effect = RuntimeError("secret detail")

    with patch("src.middleware.slack_responder.requests.post") as post:
        post.return_value = Mock(status_code=200)
        response = client.post(
            "/slack/commands", data=command_form(response_url=RESPONSE_URL), buffered=True
        )

    assert response.data == b""
    message = post.call_args[1]["json"]
    assert message["response_type"] == "ephemeral"
    assert "secret detail" not in message["text"]


def test_unknown_command(client, sink):
    response = client.post("/slack/commands", data=command_form(command="/nope"))

    assert response.get_json() == {"text": "Unknown command: /nope", "response_type": "ephemeral"}
    sink.log.assert_called_once()
    assert sink.log.call_args[0][0] == "command"


def test_unknown_command_from_unregistered_workspace_is_logged_and_refused(client, sink):
    response = client.post("/slack/commands", data=command_form(command="/nope", team_id="T_EVIL"))

    assert response.get_json()["text"].startswith("🔒 This workspace is not registered")
    sink.log.assert_called_once()
    assert sink.log.call_args[0][1]["team_id"] == "T_EVIL"


def test_handler_failure_is_reported_generically(client, handlers):
    handlers["commands"]["/standup"].side_effect = RuntimeError("secret detail")

    response = client.post("/slack/commands", data=command_form())

    body = response.get_json()
    assert body["response_type"] == "ephemeral"
    assert "secret detail" not in body["text"]


# ============================================================================
# Interactions
# ============================================================================

def test_block_action_is_dispatched_by_action_id(client, handlers):
    payload = {
        "type": "block_actions",
        "user": {"id": "U_ALICE", "team_id": "T_ACME"},
        "team": {"id": "T_ACME"},
        "actions": [{"action_id": "approve", "value": "1"}],
    }

    response = client.post("/slack/interactions", data={"payload": json.dumps(payload)})

    assert response.get_json() == {"text": "approved"}
    handlers["interactions"]["approve"].assert_called_once()


def test_view_submission_is_dispatched_by_callback_id(client, handlers, sink):
    payload = {
        "type": "view_submission",
        "user": {"id": "U_ALICE"},
        "team": {"id": "T_ACME"},
        "view": {"id": "V1", "callback_id": "standup_modal", "state": {"values": {}}},
    }

    response = client.post("/slack/interactions", data={"payload": json.dumps(payload)})

    assert response.get_json() == {"response_action": "clear"}
    sink.log.assert_called_once_with("view", payload["view"])


def test_interaction_from_non_member_is_refused(client, handlers):
    payload = {
        "type": "block_actions",
        "user": {"id": "U_MALLORY"},
        "team": {"id": "T_ACME"},
        "actions": [{"action_id": "approve"}],
    }

    response = client.post("/slack/interactions", data={"payload": json.dumps(payload)})

    assert response.get_json()["text"].startswith("🔒 You are not a member")
    handlers["interactions"]["approve"].assert_not_called()


@pytest.mark.parametrize("data", [{}, {"payload": "{not json"}, {"payload": "[1, 2]"}])
def test_malformed_interaction_is_a_bad_request(client, data):
    response = client.post("/slack/interactions", data=data)

    assert response.status_code == 400
    assert response.get_json()["code"] == "INVALID_SLACK_REQUEST"


# ============================================================================
# Events
# ============================================================================

def test_url_verification(client):
    response = client.post("/slack/events", json={"type": "url_verification", "challenge": "abc123"})
    assert response.get_json() == {"challenge": "abc123"}


def test_event_callback_is_logged_and_dispatched(client, handlers, sink):
    event = {"type": "app_mention", "user": "U_ALICE", "text": "hi", "channel": "C1"}

    response = client.post(
        "/slack/events", json={"type": "event_callback", "team_id": "T_ACME", "event": event}, buffered=True
    )

    assert response.get_json() == {"status": "ok"}
    sink.log.assert_called_once_with("event", event)
    context = handlers["events"]["app_mention"].call_args[0][0]
    assert context.command.workspace_id == "T_ACME"


def test_event_handler_runs_after_the_ack_is_sent(app, handlers):
    events = []
    record_http_status(app, events)
    handlers["events"]["app_mention"].side_effect = lambda ctx: events.append(("handler",))

    app.test_client().post(
        "/slack/events",
        json={"type": "event_callback", "team_id": "T_ACME", "event": {"type": "app_mention"}},
        buffered=True,
    )

    assert events == [("http", "200 OK"), ("handler",)]


def test_bot_messages_are_logged_but_not_dispatched(client, handlers, sink):
    event = {"type": "message", "bot_id": "B1", "text": "beep"}

    client.post(
        "/slack/events", json={"type": "event_callback", "team_id": "T_ACME", "event": event}, buffered=True
    )

    sink.log.assert_called_once_with("message", event)
    handlers["events"]["message"].assert_not_called()


def test_user_messages_are_dispatched(client, handlers, sink):
    event = {"type": "message", "user": "U_ALICE", "text": "hello", "channel": "C1"}

    client.post(
        "/slack/events", json={"type": "event_callback", "team_id": "T_ACME", "event": event}, buffered=True
    )

    sink.log.assert_called_once_with("message", event)
    handlers["events"]["message"].assert_called_once()


def test_empty_event_body_is_a_bad_request(client):
    response = client.post("/slack/events", data="", content_type="application/json")
    assert response.status_code == 400


# ============================================================================
# Signature verification
# ============================================================================

@pytest.fixture
def signed_app(repository, sink, handlers, monkeypatch):
    monkeypatch.setattr(slack_parser, "SLACK_SIGNING_SECRET", "test-secret")
    return create_app(
        gate=AuthenticationGate(repository),
        sink=sink,
        command_handlers=handlers["commands"],
    )


def test_unsigned_request_is_rejected(signed_app, handlers):
    response = signed_app.test_client().post("/slack/commands", data=command_form())

    assert response.status_code == 403
    handlers["commands"]["/standup"].assert_not_called()


def test_signed_request_is_accepted(signed_app, handlers):
    body = urlencode(command_form())
    timestamp = str(int(time.time()))
    signature = SignatureVerifier("test-secret").generate_signature(timestamp=timestamp, body=body)

    response = signed_app.test_client().post(
        "/slack/commands",
        data=body,
        content_type="application/x-www-form-urlencoded",
        headers={"X-Slack-Request-Timestamp": timestamp, "X-Slack-Signature": signature},
    )

    assert response.status_code == 200
    handlers["commands"]["/standup"].assert_called_once()


def test_health_needs_no_signature(signed_app):
    assert signed_app.test_client().get("/health").status_code == 200


# ============================================================================
# Request parsing helpers
# ============================================================================

@pytest.mark.parametrize("payload, expected", [
    ({"team_id": "T1"}, "T1"),
    ({"team": {"id": "T2"}}, "T2"),
    ({"user": {"id": "U1", "team_id": "T3"}}, "T3"),
    ({"authorizations": [{"team_id": "T4"}]}, "T4"),
    ({"event": {"team": "T5"}}, "T5"),
    ({}, None),
])
def test_extract_workspace_id(payload, expected):
    assert slack_parser.extract_workspace_id(payload) == expected


# ============================================================================
# Transport
# ============================================================================

def test_responder_holds_first_message_for_the_body_until_delivered():
    responder = SlackResponder(RESPONSE_URL)

    with patch("src.middleware.slack_responder.requests.post") as post:
        responder.ack()
        responder.respond({"text": "refused"})

    post.assert_not_called()
    assert responder.http_body() == {"text": "refused"}


def test_responder_runs_deferred_work_in_a_thread_after_delivery():
    responder = SlackResponder(RESPONSE_URL)
    work = Mock(return_value=None)

    assert responder.dispatch(work) is None
    work.assert_not_called()

    responder.deliver()
    responder.worker.join(timeout=5)

    work.assert_called_once_with()
    assert responder.worker.name == "slack-handler"


def test_responder_without_response_url_runs_work_inline():
    responder = SlackResponder()
    work = Mock(return_value="done")

    assert responder.dispatch(work) == "done"
    work.assert_called_once_with()


def test_message_after_delivery_without_response_url_is_dropped(caplog):
    responder = SlackResponder(defer=True)
    responder.deliver()

    with patch("src.middleware.slack_responder.requests.post") as post:
        responder.respond({"text": "late"})

    post.assert_not_called()
    assert responder.http_body() is None
    assert "dropping" in caplog.text
