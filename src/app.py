#!/usr/bin/env python3
"""
Slack HTTP entry point for the Daily Dose command gate.

Every Slack request is verified, parsed, and run through a command
pipeline (sanitize -> log -> authenticate) before its business handler is
dispatched. Handlers are registered by name:

    app = create_app(command_handlers={'/standup': handle_standup})

The HTTP 200 is Slack's ack. Refusals ride in its body; handlers for
requests with a response_url start only after it has been written.

Routes:
    GET  /health              liveness check
    POST /slack/commands      slash commands
    POST /slack/interactions  block actions and view submissions
    POST /slack/events        Events API (url_verification and callbacks)

Run locally with `python -m src.app --port 3000`; in production gunicorn
loads `src.app:create_app()` (see gunicorn_config.py).
"""

import logging
import os
import sys
from typing import Callable, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, make_response, request
from werkzeug.exceptions import HTTPException

from src.middleware.authentication import AuthenticationGate
from src.middleware.command_logger import CommandLogSink, StructuredLogSink
from src.middleware.exceptions import InvalidSlackRequestError
from src.middleware.pipeline import (
    Command,
    RequestContext,
    build_command_pipeline,
    build_event_pipeline,
    build_interaction_pipeline,
    ephemeral,
)
from src.middleware.request_context import AuthContextFilter
from src.middleware.slack_parser import (
    extract_workspace_id,
    parse_event,
    parse_interaction,
    parse_slash_command,
    verify_slack_signature,
)
from src.middleware.slack_responder import SlackResponder

load_dotenv()

logger = logging.getLogger(__name__)

Handler = Callable[[RequestContext], None]


def configure_logging(level: str = None) -> None:
    """Log to stdout, tagging records with the authenticated caller."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(AuthContextFilter())
    logging.basicConfig(
        level=(level or os.getenv('LOG_LEVEL', 'INFO')).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[handler]
    )


def _default_gate() -> AuthenticationGate:
    from src.repository.cache import CachedRepository
    from src.repository.sqlalchemy_repository import SqlAlchemyRepository

    return AuthenticationGate(CachedRepository(SqlAlchemyRepository()))


def create_app(
    gate: Optional[AuthenticationGate] = None,
    sink: Optional[CommandLogSink] = None,
    command_handlers: Optional[Dict[str, Handler]] = None,
    interaction_handlers: Optional[Dict[str, Handler]] = None,
    event_handlers: Optional[Dict[str, Handler]] = None,
    verify_signatures: bool = True,
    background_handlers: bool = True
) -> Flask:
    """
    Build the Flask application.

    Args:
        gate: Authentication gate (defaults to SQLAlchemy + Redis cache)
        sink: Payload log sink (defaults to StructuredLogSink)
        command_handlers: Slash command name ('/standup') -> handler
        interaction_handlers: action_id or view callback_id -> handler
        event_handlers: Event type ('app_mention') -> handler
        verify_signatures: Check X-Slack-Signature on every request
        background_handlers: Run held-back handler work in a thread after
            the ack (False runs it inline when the response closes)
    """
    gate = gate or _default_gate()
    sink = sink or StructuredLogSink()
    command_handlers = dict(command_handlers or {})
    interaction_handlers = dict(interaction_handlers or {})
    event_handlers = dict(event_handlers or {})

    command_pipeline = build_command_pipeline(gate, sink)
    interaction_pipelines = {
        'block_actions': build_interaction_pipeline(gate, sink, 'action'),
        'view_submission': build_interaction_pipeline(gate, sink, 'view'),
    }
    event_pipeline = build_event_pipeline(sink)
    message_pipeline = build_event_pipeline(sink, 'message')

    app = Flask(__name__)
    app.config['VERIFY_SLACK_SIGNATURES'] = verify_signatures

    def _responder(response_url: Optional[str] = None, defer: Optional[bool] = None) -> SlackResponder:
        return SlackResponder(response_url, defer=defer, background=background_handlers)

    def _reply(responder: SlackResponder):
        body = responder.http_body()
        response = make_response(jsonify(body) if body is not None else '', 200)
        # Held-back handler work starts once the 200 (the ack) is written
        response.call_on_close(responder.deliver)
        return response

    @app.before_request
    def check_signature():
        if not request.path.startswith('/slack/'):
            return None
        if app.config['VERIFY_SLACK_SIGNATURES'] and not verify_slack_signature(request):
            return jsonify({'error': 'Invalid request signature', 'code': 'INVALID_SIGNATURE'}), 403
        return None

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({'status': 'ok'}), 200

    @app.route('/slack/commands', methods=['POST'])
    def slack_commands():
        command = parse_slash_command(request)
        logger.info(f"📥 Received command: {command.command} from {command.user_id}")

        handler = command_handlers.get(command.command)
        if handler is None:
            logger.warning(f"⚠️  Unknown command: {command.command}")
            unknown = ephemeral(f"Unknown command: {command.command}")

            def reply_unknown(ctx: RequestContext) -> None:
                ctx.respond(unknown)

            handler = reply_unknown

        responder = _responder(command.response_url)
        command_pipeline.run(RequestContext(command, responder, kind='command', payload=command.raw), handler)
        return _reply(responder)

    @app.route('/slack/interactions', methods=['POST'])
    def slack_interactions():
        payload = parse_interaction(request)
        interaction_type = payload.get('type')

        pipeline = interaction_pipelines.get(interaction_type)
        if pipeline is None:
            logger.debug(f"Ignoring interaction type: {interaction_type}")
            return jsonify({'status': 'ok'})

        command = Command.from_interaction(payload)
        if not command.workspace_id:
            command.workspace_id = extract_workspace_id(payload)

        if interaction_type == 'view_submission':
            view = payload.get('view') or {}
            kind, log_payload = 'view', view
            handlers = [interaction_handlers.get(view.get('callback_id'))]
        else:
            kind, log_payload = 'action', payload
            handlers = [interaction_handlers.get(a.get('action_id')) for a in payload.get('actions', [])]

        handlers = [h for h in handlers if h is not None]

        def dispatch(context: RequestContext) -> None:
            if not handlers:
                logger.debug(f"No handler registered for {interaction_type}")
            for handler in handlers:
                handler(context)

        responder = _responder(command.response_url)
        pipeline.run(RequestContext(command, responder, kind=kind, payload=log_payload), dispatch)
        return _reply(responder)

    @app.route('/slack/events', methods=['POST'])
    def slack_events():
        data = parse_event(request)

        if data.get('type') == 'url_verification':
            return jsonify({'challenge': data.get('challenge')})

        responder = _responder(defer=True)

        if data.get('type') == 'event_callback':
            event = data.get('event') or {}
            event_type = event.get('type')
            user = event.get('user')
            command = Command(
                user_id=user.get('id') if isinstance(user, dict) else user,
                workspace_id=extract_workspace_id(data),
                text=event.get('text'),
                channel_id=event.get('channel') if isinstance(event.get('channel'), str) else None,
                raw=data,
            )

            # Bot messages (our own included) are logged but never dispatched
            is_bot_message = event_type == 'message' and bool(event.get('bot_id'))
            handler = None if is_bot_message else event_handlers.get(event_type)

            pipeline = message_pipeline if event_type == 'message' else event_pipeline
            context = RequestContext(command, responder, kind='event', payload=event)

            def dispatch(ctx: RequestContext) -> None:
                if handler is not None:
                    handler(ctx)

            pipeline.run(context, dispatch)

        response = make_response(jsonify({'status': 'ok'}), 200)
        response.call_on_close(responder.deliver)
        return response

    @app.errorhandler(InvalidSlackRequestError)
    def handle_invalid_request(error: InvalidSlackRequestError):
        logger.warning(f"Invalid Slack request: {error}")
        return jsonify({
            'error': error.message,
            'code': error.error_code,
            'details': error.details
        }), error.http_status

    @app.errorhandler(Exception)
    def handle_exception(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({'error': 'Internal server error', 'code': 'INTERNAL_ERROR'}), 500

    logger.info(
        f"Daily Dose app created: {len(command_handlers)} commands, "
        f"{len(interaction_handlers)} interactions, {len(event_handlers)} events"
    )
    return app


def start_server(port: int = 3000, debug: bool = False, init_tables: bool = False) -> None:
    """Start the Flask development server."""
    from src.database import db_manager, init_db

    configure_logging()
    if db_manager.engine is not None:
        db_manager.check_connection()
        if init_tables:
            init_db()

    app = create_app()
    logger.info(f"🚀 Starting Daily Dose on port {port}...")
    logger.info(f"   Commands: http://localhost:{port}/slack/commands")
    logger.info(f"   Interactions: http://localhost:{port}/slack/interactions")
    logger.info(f"   Events: http://localhost:{port}/slack/events")
    app.run(host='0.0.0.0', port=port, debug=debug)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Start the Daily Dose Slack server')
    parser.add_argument('--port', type=int, default=int(os.getenv('PORT', '3000')), help='Port to run on (default: 3000)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--init-db', action='store_true', help='Create tables directly (local SQLite only; use Alembic elsewhere)')

    args = parser.parse_args()

    start_server(port=args.port, debug=args.debug, init_tables=args.init_db)
