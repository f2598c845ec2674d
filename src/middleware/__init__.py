"""
Command gate middleware for the Daily Dose Slack app.

Every inbound Slack command passes through an ordered pipeline before any
business handler sees it.

Components:
- sanitizer: Normalizes raw command text
- command_logger: Records inbound payloads (fire-and-forget)
- authentication: Resolves user, organization and membership
- auth_result: The per-request authentication outcome
- pipeline: Ordered, short-circuiting stages around a handler
- request_context: Thread-local holder of the current AuthResult
- slack_parser: Slack signature verification and payload parsing
- slack_responder: ack/respond transport over response_url
- exceptions: Error codes and exception classes

Usage:
    from src.middleware import AuthenticationGate, StructuredLogSink, build_command_pipeline

    pipeline = build_command_pipeline(AuthenticationGate(repository), StructuredLogSink())
    pipeline.run(context, handle_standup)

Flow:
    1. Slack sends a command -> Flask parses it into a Command
    2. SanitizeStage cleans the text
    3. LogStage records the raw payload
    4. AuthenticateStage resolves the caller, or answers "🔒 <message>"
    5. Handler runs with the AuthResult in the thread-local context
"""

from src.middleware.exceptions import (
    AuthContextError,
    AuthError,
    AuthErrorCode,
    InvalidSlackRequestError,
    RepositoryError,
)
from src.middleware.auth_result import AuthResult
from src.middleware.authentication import AuthenticationGate
from src.middleware.command_logger import CommandLogSink, StructuredLogSink
from src.middleware.request_context import (
    AuthContextFilter,
    auth_context,
    clear_auth_context,
    get_current_auth,
    get_current_auth_safe,
    require_auth,
)
from src.middleware.sanitizer import sanitize
from src.middleware.pipeline import (
    Command,
    CommandPipeline,
    PipelineOutcome,
    RequestContext,
    StageResult,
    build_command_pipeline,
    build_event_pipeline,
    build_interaction_pipeline,
)

__all__ = [
    # Exceptions
    'AuthContextError',
    'AuthError',
    'AuthErrorCode',
    'InvalidSlackRequestError',
    'RepositoryError',

    # Authentication
    'AuthResult',
    'AuthenticationGate',

    # Logging
    'CommandLogSink',
    'StructuredLogSink',

    # Request context
    'AuthContextFilter',
    'auth_context',
    'clear_auth_context',
    'get_current_auth',
    'get_current_auth_safe',
    'require_auth',

    # Pipeline
    'sanitize',
    'Command',
    'CommandPipeline',
    'PipelineOutcome',
    'RequestContext',
    'StageResult',
    'build_command_pipeline',
    'build_event_pipeline',
    'build_interaction_pipeline',
]
