"""
Per-request Slack transport.

Slack expects an HTTP 200 within three seconds; that 200 is the ack.
Anything said before the 200 goes out (a refusal, a view's
response_action) rides in its body. Handler work for requests that carry
a response_url is held back until the 200 has been written, then runs in
a background thread and answers through the response_url.

Requests without a response_url (view submissions) run their handler
inline, since the body is the only place their answer can go. Events are
deferred without a response_url; their handlers talk to the Web API.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests

from src.middleware.pipeline import Responder

logger = logging.getLogger(__name__)

RESPONSE_URL_TIMEOUT = 10


class SlackResponder(Responder):
    """
    Usage:
        responder = SlackResponder(command.response_url)
        pipeline.run(RequestContext(command, responder), handler)
        response = make_response(responder.http_body() or '')
        response.call_on_close(responder.deliver)
    """

    def __init__(
        self,
        response_url: Optional[str] = None,
        timeout: int = RESPONSE_URL_TIMEOUT,
        defer: Optional[bool] = None,
        background: bool = True
    ):
        super().__init__()
        self.response_url = response_url
        self.timeout = timeout
        self.defer = bool(response_url) if defer is None else defer
        self.background = background
        self.pending: Optional[Dict[str, Any]] = None
        self.delivered = False
        self.worker: Optional[threading.Thread] = None
        self._deferred: List[Callable[[], Any]] = []

    def _send_ack(self) -> None:
        # Written to the wire when the route returns; see deliver()
        logger.debug("Slack request acknowledged")

    def dispatch(self, work: Callable[[], Any]) -> Any:
        if not self.defer:
            return work()
        self._deferred.append(work)
        return None

    def deliver(self) -> None:
        """
        Run held-back handler work. Called once the HTTP response (the
        ack) has been sent.
        """
        self.delivered = True
        if not self._deferred:
            return

        work, self._deferred = self._deferred, []

        def run():
            for item in work:
                item()

        if self.background:
            self.worker = threading.Thread(target=run, name="slack-handler")
            self.worker.start()
        else:
            run()

    def respond(self, message: Dict[str, Any]) -> None:
        if not self.delivered and self.pending is None:
            self.pending = message
            return

        if not self.response_url:
            logger.warning("No response_url for message sent after the ack; dropping it")
            return

        response = requests.post(self.response_url, json=message, timeout=self.timeout)
        if response.status_code >= 400:
            logger.warning(
                f"response_url rejected message: {response.status_code} {response.text}"
            )

    def http_body(self) -> Optional[Dict[str, Any]]:
        """Message to return as the HTTP body, if one was held back."""
        return self.pending
