"""
Log sink for inbound Slack payloads.

Every command, message, event, block action and view submission is
recorded before authentication runs, so rejected requests stay visible.
Only a whitelisted subset of each payload is logged.

The pipeline talks to the CommandLogSink interface; StructuredLogSink is
the default implementation and writes one INFO record per payload with the
selected fields attached as `extra`.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _nested_id(value: Any) -> Any:
    """Slack sends some references as {'id': ...} and others as bare IDs."""
    if isinstance(value, dict):
        return value.get('id')
    return value


class CommandLogSink(ABC):
    """Receives raw Slack payloads. Implementations must not raise."""

    @abstractmethod
    def log_command(self, payload: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def log_message(self, payload: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def log_event(self, event_type: Optional[str], payload: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def log_action(self, payload: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def log_view(self, payload: Dict[str, Any]) -> None:
        pass

    def log(self, kind: str, payload: Dict[str, Any]) -> None:
        """Dispatch by payload kind ('command', 'message', 'event', 'action', 'view')."""
        if kind == 'command':
            self.log_command(payload)
        elif kind == 'message':
            self.log_message(payload)
        elif kind == 'event':
            self.log_event(payload.get('type'), payload)
        elif kind == 'action':
            self.log_action(payload)
        elif kind == 'view':
            self.log_view(payload)
        else:
            raise ValueError(f"Unknown payload kind: {kind}")


class StructuredLogSink(CommandLogSink):
    """
    Writes payload summaries to the standard logging system.

    Example:
        sink = StructuredLogSink()
        sink.log_command({'command': '/standup', 'user_id': 'U1', 'team_id': 'T1'})
    """

    def __init__(self, log: logging.Logger = None):
        self.logger = log or logger

    def _emit(self, label: str, fields: Dict[str, Any]) -> None:
        self.logger.info(f"{label}: {fields}", extra={'slack_payload': label.lower(), **_prefixed(fields)})

    def log_command(self, payload: Dict[str, Any]) -> None:
        self._emit("COMMAND", {
            'command': payload.get('command'),
            'user_id': payload.get('user_id'),
            'user_name': payload.get('user_name'),
            'channel_id': payload.get('channel_id'),
            'channel_name': payload.get('channel_name'),
            'team_id': payload.get('team_id'),
            'text': payload.get('text'),
            'trigger_id': payload.get('trigger_id'),
        })

    def log_message(self, payload: Dict[str, Any]) -> None:
        self._emit("MESSAGE", {
            'type': payload.get('type'),
            'user': payload.get('user'),
            'channel': payload.get('channel'),
            'text': payload.get('text'),
            'ts': payload.get('ts'),
            'team': payload.get('team'),
            'subtype': payload.get('subtype'),
        })

    def log_event(self, event_type: Optional[str], payload: Dict[str, Any]) -> None:
        self._emit("EVENT", {
            'type': event_type,
            'user': _nested_id(payload.get('user')),
            'channel': _nested_id(payload.get('channel')),
            'team': _nested_id(payload.get('team')),
            'trigger_id': payload.get('trigger_id'),
            'action_id': payload.get('action_id'),
            'callback_id': payload.get('callback_id'),
            'view_id': _nested_id(payload.get('view')),
        })

    def log_action(self, payload: Dict[str, Any]) -> None:
        self._emit("ACTION", {
            'action_id': payload.get('action_id'),
            'block_id': payload.get('block_id'),
            'type': payload.get('type'),
            'value': payload.get('value'),
            'selected_option': payload.get('selected_option'),
            'user': _nested_id(payload.get('user')),
            'trigger_id': payload.get('trigger_id'),
        })

    def log_view(self, payload: Dict[str, Any]) -> None:
        state = payload.get('state') or {}
        self._emit("VIEW", {
            'callback_id': payload.get('callback_id'),
            'type': payload.get('type'),
            'id': payload.get('id'),
            'team_id': payload.get('team_id'),
            'state': list((state.get('values') or {}).keys()),
        })


def _prefixed(fields: Dict[str, Any]) -> Dict[str, Any]:
    # LogRecord reserves names like 'name' and 'msg'; keep extras clear of them
    return {f"slack_{key}": value for key, value in fields.items()}
