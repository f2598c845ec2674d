"""
Command middleware pipeline.

A pipeline is an explicit, ordered list of stages wrapped around a
business handler. Each stage inspects (and may rewrite) the request
context and returns a StageResult: CONTINUE, or SHORT_CIRCUIT with the
response to send instead of running the handler.

    sanitize  ->  log  ->  authenticate  ->  handler
                              |
                              +-- failure: ack, "🔒 <message>", stop

Stages run strictly one after another for a given request. The pipeline
keeps no per-request state of its own, so a single instance is shared by
all worker threads.

Transport contract:
    - ack() is sent exactly once per request, before the handler runs or
      together with the short-circuit response
    - user-visible failures are always ephemeral messages
    - exception details are logged, never shown to the user
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from src.middleware.auth_result import AuthResult
from src.middleware.authentication import AuthenticationGate
from src.middleware.command_logger import CommandLogSink
from src.middleware.request_context import auth_context
from src.middleware.sanitizer import sanitize

logger = logging.getLogger(__name__)

LOCK_PREFIX = "🔒"
AUTH_FAILURE_FALLBACK = f"{LOCK_PREFIX} Authentication failed. Please try again or contact support."
HANDLER_FAILURE_MESSAGE = "❌ Something went wrong while processing your command. Please try again."


def ephemeral(text: str) -> Dict[str, str]:
    """Build an ephemeral Slack response."""
    return {"text": text, "response_type": "ephemeral"}


# ============================================================================
# Request values
# ============================================================================

@dataclass
class Command:
    """
    One inbound request, with Slack's field names mapped to ours
    (user_id -> user_id, team_id -> workspace_id).

    Only SanitizeStage rewrites `text`.
    """

    user_id: Optional[str]
    workspace_id: Optional[str]
    text: Optional[str] = None
    command: Optional[str] = None
    user_name: Optional[str] = None
    channel_id: Optional[str] = None
    response_url: Optional[str] = None
    trigger_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_slash_command(cls, payload: Dict[str, Any]) -> "Command":
        return cls(
            user_id=payload.get('user_id'),
            workspace_id=payload.get('team_id'),
            text=payload.get('text'),
            command=payload.get('command'),
            user_name=payload.get('user_name'),
            channel_id=payload.get('channel_id'),
            response_url=payload.get('response_url'),
            trigger_id=payload.get('trigger_id'),
            raw=dict(payload),
        )

    @classmethod
    def from_interaction(cls, payload: Dict[str, Any]) -> "Command":
        user = payload.get('user') or {}
        team = payload.get('team') or {}
        channel = payload.get('channel') or {}
        return cls(
            user_id=user.get('id'),
            workspace_id=team.get('id') or user.get('team_id'),
            user_name=user.get('name') or user.get('username'),
            channel_id=channel.get('id'),
            response_url=payload.get('response_url'),
            trigger_id=payload.get('trigger_id'),
            raw=dict(payload),
        )


class Responder(ABC):
    """
    Transport handle for one request.

    ack() is idempotent: only the first call reaches the transport and it
    returns True; later calls return False. dispatch() runs the handler;
    transports that send the ack asynchronously hold the work back until
    it is out and return None.
    """

    def __init__(self):
        self.acked = False

    def ack(self) -> bool:
        if self.acked:
            return False
        self.acked = True
        self._send_ack()
        return True

    @abstractmethod
    def _send_ack(self) -> None:
        pass

    def dispatch(self, work: Callable[[], Any]) -> Any:
        return work()

    @abstractmethod
    def respond(self, message: Dict[str, Any]) -> None:
        pass


@dataclass
class RequestContext:
    """
    Everything a stage or handler can see for one request.

    `kind` is the payload type used for logging ('command', 'event',
    'action', 'view'); `payload` is the raw dict handed to the log sink.
    """

    command: Command
    responder: Responder
    kind: str = 'command'
    payload: Dict[str, Any] = field(default_factory=dict)
    auth: Optional[AuthResult] = None

    def respond(self, message: Dict[str, Any]) -> None:
        self.responder.respond(message)


# ============================================================================
# Stage results
# ============================================================================

class StageAction(Enum):
    CONTINUE = "continue"
    SHORT_CIRCUIT = "short_circuit"


@dataclass(frozen=True)
class StageResult:
    action: StageAction
    response: Optional[Dict[str, Any]] = None

    @classmethod
    def proceed(cls) -> "StageResult":
        return cls(StageAction.CONTINUE)

    @classmethod
    def short_circuit(cls, response: Dict[str, Any]) -> "StageResult":
        return cls(StageAction.SHORT_CIRCUIT, response)

    @property
    def is_short_circuit(self) -> bool:
        return self.action is StageAction.SHORT_CIRCUIT


class PipelineOutcome(Enum):
    HANDLED = "handled"
    SHORT_CIRCUITED = "short_circuited"
    FAILED = "failed"
    DEFERRED = "deferred"


# ============================================================================
# Stages
# ============================================================================

class Stage(ABC):
    name = "stage"

    @abstractmethod
    def process(self, context: RequestContext) -> StageResult:
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class SanitizeStage(Stage):
    """Normalizes command text in place. Never short-circuits."""

    name = "sanitize"

    def process(self, context: RequestContext) -> StageResult:
        if context.command.text:
            context.command.text = sanitize(context.command.text)
        return StageResult.proceed()


class LogStage(Stage):
    """Hands the raw payload to the log sink. Never short-circuits."""

    name = "log"

    def __init__(self, sink: CommandLogSink, kind: str = 'command'):
        self.sink = sink
        self.kind = kind

    def process(self, context: RequestContext) -> StageResult:
        payload = context.payload or context.command.raw
        try:
            if self.kind == 'action' and isinstance(payload.get('actions'), list):
                for action in payload['actions']:
                    self.sink.log_action({**action, 'user': payload.get('user'), 'trigger_id': payload.get('trigger_id')})
            else:
                self.sink.log(self.kind, payload)
        except Exception as e:
            # Fire-and-forget: a broken sink must not block the command
            logger.warning(f"Log sink failed for {self.kind}: {e}", exc_info=True)
        return StageResult.proceed()


class AuthenticateStage(Stage):
    """
    Runs the authentication gate. On failure short-circuits with the
    error's message behind a lock; on success attaches the AuthResult to
    the context.
    """

    name = "authenticate"

    def __init__(self, gate: AuthenticationGate):
        self.gate = gate

    def process(self, context: RequestContext) -> StageResult:
        command = context.command
        # Slack sends only the handle here, not a display name; no profile is passed
        result = self.gate.authenticate_user(command.user_id, command.workspace_id)
        if not result.success:
            logger.info(
                f"Authentication refused for {command.user_id}@{command.workspace_id}: "
                f"{result.error.code.value}",
                extra={'slack_user_id': command.user_id, 'slack_workspace_id': command.workspace_id}
            )
            return StageResult.short_circuit(ephemeral(f"{LOCK_PREFIX} {result.error.message}"))

        context.auth = result
        return StageResult.proceed()


# ============================================================================
# Pipeline
# ============================================================================

Handler = Callable[[RequestContext], Any]


class CommandPipeline:
    """
    Ordered, short-circuiting stage chain.

    Usage:
        pipeline = build_command_pipeline(gate, StructuredLogSink())
        outcome = pipeline.run(context, handle_standup)
    """

    def __init__(self, stages: List[Stage]):
        self.stages = list(stages)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def run(self, context: RequestContext, handler: Handler) -> PipelineOutcome:
        """
        Run every stage in order, then the handler.

        Returns:
            HANDLED if the handler ran to completion, SHORT_CIRCUITED if a
            stage answered instead, FAILED if a stage or the handler raised,
            DEFERRED if the responder will run the handler after the ack
        """
        try:
            for stage in self.stages:
                result = stage.process(context)
                if result.is_short_circuit:
                    context.responder.ack()
                    self._respond(context, result.response)
                    return PipelineOutcome.SHORT_CIRCUITED
        except Exception as e:
            logger.error(f"Pipeline stage error: {e}", exc_info=True)
            context.responder.ack()
            self._respond(context, ephemeral(AUTH_FAILURE_FALLBACK))
            return PipelineOutcome.FAILED

        context.responder.ack()

        outcome = context.responder.dispatch(lambda: self._call_handler(context, handler))
        return outcome if outcome is not None else PipelineOutcome.DEFERRED

    def _call_handler(self, context: RequestContext, handler: Handler) -> PipelineOutcome:
        try:
            if context.auth is not None and context.auth.success:
                with auth_context(context.auth):
                    handler(context)
            else:
                handler(context)
            return PipelineOutcome.HANDLED

        except Exception as e:
            logger.error(
                f"Handler error for {context.command.command or context.kind}: {e}",
                exc_info=True,
                extra={
                    'slack_user_id': context.command.user_id,
                    'slack_workspace_id': context.command.workspace_id
                }
            )
            context.responder.ack()
            self._respond(context, ephemeral(HANDLER_FAILURE_MESSAGE))
            return PipelineOutcome.FAILED

    def _respond(self, context: RequestContext, message: Dict[str, Any]) -> None:
        try:
            context.responder.respond(message)
        except Exception as e:
            logger.error(f"Failed to deliver response: {e}", exc_info=True)


def build_command_pipeline(gate: AuthenticationGate, sink: CommandLogSink) -> CommandPipeline:
    """sanitize -> log -> authenticate, for slash commands."""
    return CommandPipeline([
        SanitizeStage(),
        LogStage(sink, 'command'),
        AuthenticateStage(gate),
    ])


def build_interaction_pipeline(gate: AuthenticationGate, sink: CommandLogSink, kind: str) -> CommandPipeline:
    """log -> authenticate, for block actions ('action') and view submissions ('view')."""
    return CommandPipeline([
        LogStage(sink, kind),
        AuthenticateStage(gate),
    ])


def build_event_pipeline(sink: CommandLogSink, kind: str = 'event') -> CommandPipeline:
    """log only; events carry no command to authorize. Message events use kind='message'."""
    return CommandPipeline([LogStage(sink, kind)])
