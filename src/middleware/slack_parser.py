"""
Slack request parsing and signature verification.

Slack delivers three kinds of requests to the gate:
- Slash commands: POST application/x-www-form-urlencoded, fields at top level
- Interactions: POST application/x-www-form-urlencoded, JSON in `payload`
- Events API: POST application/json

Security:
- Every request is checked against SLACK_SIGNING_SECRET with slack_sdk's
  SignatureVerifier, which also rejects stale timestamps (replay window)
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Request
from slack_sdk.signature import SignatureVerifier

from src.middleware.exceptions import InvalidSlackRequestError
from src.middleware.pipeline import Command

load_dotenv()

logger = logging.getLogger(__name__)

SLACK_SIGNING_SECRET = os.getenv('SLACK_SIGNING_SECRET')


def verify_slack_signature(request: Request, signing_secret: str = None) -> bool:
    """
    Verify that a request came from Slack.

    Args:
        request: Flask request object
        signing_secret: Slack signing secret (defaults to env var)

    Returns:
        True if the signature is valid, False otherwise

    Example:
        if not verify_slack_signature(request):
            return jsonify({'error': 'Invalid signature'}), 403
    """
    signing_secret = signing_secret or SLACK_SIGNING_SECRET
    if not signing_secret:
        logger.error("SLACK_SIGNING_SECRET not configured")
        return False

    timestamp = request.headers.get('X-Slack-Request-Timestamp')
    signature = request.headers.get('X-Slack-Signature')
    if not timestamp or not signature:
        logger.warning("Missing Slack signature headers")
        return False

    try:
        verifier = SignatureVerifier(signing_secret)
        valid = verifier.is_valid(
            body=request.get_data(as_text=True),
            timestamp=timestamp,
            signature=signature
        )
    except Exception as e:
        logger.error(f"Signature verification failed: {e}")
        return False

    if not valid:
        logger.warning(
            f"Invalid Slack signature: {request.path}",
            extra={'path': request.path, 'ip': request.remote_addr}
        )
    return valid


def extract_workspace_id(payload: Dict[str, Any]) -> Optional[str]:
    """
    Find the Slack team ID in a parsed payload.

    Tries, in order: team_id, team.id, user.team_id,
    authorizations[0].team_id, event.team.
    """
    if payload.get('team_id'):
        return payload['team_id']

    team = payload.get('team')
    if isinstance(team, dict) and team.get('id'):
        return team['id']

    user = payload.get('user')
    if isinstance(user, dict) and user.get('team_id'):
        return user['team_id']

    authorizations = payload.get('authorizations')
    if isinstance(authorizations, list) and authorizations:
        team_id = authorizations[0].get('team_id')
        if team_id:
            return team_id

    event = payload.get('event')
    if isinstance(event, dict) and event.get('team'):
        return event['team']

    logger.debug(f"Could not find team_id in payload. Keys: {list(payload.keys())}")
    return None


def parse_slash_command(request: Request) -> Command:
    """
    Parse a slash command request into a Command.

    Example:
        command = parse_slash_command(request)
        print(f"{command.command} from {command.user_id}: {command.text}")
    """
    form = {
        'command': request.form.get('command'),
        'text': request.form.get('text', ''),
        'user_id': request.form.get('user_id'),
        'user_name': request.form.get('user_name'),
        'channel_id': request.form.get('channel_id'),
        'channel_name': request.form.get('channel_name'),
        'team_id': request.form.get('team_id'),
        'team_domain': request.form.get('team_domain'),
        'response_url': request.form.get('response_url'),
        'trigger_id': request.form.get('trigger_id'),
    }
    return Command.from_slash_command(form)


def parse_interaction(request: Request) -> Dict[str, Any]:
    """
    Parse an interaction request (buttons, menus, modals).

    Raises:
        InvalidSlackRequestError: If `payload` is missing or not JSON
    """
    payload_str = request.form.get('payload')
    if not payload_str:
        raise InvalidSlackRequestError("Missing payload field in interaction request")

    try:
        payload = json.loads(payload_str)
    except json.JSONDecodeError as e:
        raise InvalidSlackRequestError("Invalid JSON in interaction payload", details=str(e))

    if not isinstance(payload, dict):
        raise InvalidSlackRequestError("Interaction payload must be a JSON object")
    return payload


def parse_event(request: Request) -> Dict[str, Any]:
    """
    Parse an Events API request.

    Raises:
        InvalidSlackRequestError: If the body is empty or not a JSON object
    """
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        raise InvalidSlackRequestError("Empty or invalid JSON body in event request")
    return data
