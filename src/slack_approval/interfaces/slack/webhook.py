"""
WebhookTransport

Receives button clicks on Slack's Interactivity Request URL.
Use this when the runner is reachable from Slack and Socket Mode is not
an option.

Requires:
  SLACK_SIGNING_SECRET — For request signature verification

Setup:
  1. Enable Interactivity in the Slack app settings
  2. Set the Request URL to https://your-runner/slack/actions
"""

import asyncio
import contextlib
import hashlib
import hmac
import json
import logging
import time
from urllib.parse import parse_qs

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request

from slack_approval.core.exceptions import TransportError
from slack_approval.core.types import ActionEvent
from slack_approval.interfaces.base import ActionDispatcher, ActionTransport
from slack_approval.interfaces.slack.events import parse_block_actions

logger = logging.getLogger(__name__)

# Requests older than this are treated as replays
SIGNATURE_MAX_AGE_SECONDS = 300

STARTUP_POLL_SECONDS = 0.05


def verify_slack_signature(
    signing_secret: str, body: bytes, timestamp: str, signature: str, now: float | None = None
) -> bool:
    """Verify Slack request signature to prevent spoofing."""
    if not signature or not signing_secret:
        return False

    try:
        parsed_timestamp = int(timestamp)
    except (TypeError, ValueError):
        logger.warning("Invalid Slack signature timestamp: %r", timestamp)
        return False

    current = time.time() if now is None else now
    if abs(current - parsed_timestamp) > SIGNATURE_MAX_AGE_SECONDS:
        return False

    sig_basestring = f"v0:{parsed_timestamp}:{body.decode('utf-8')}"
    my_signature = (
        "v0="
        + hmac.new(
            signing_secret.encode(),
            sig_basestring.encode(),
            hashlib.sha256,
        ).hexdigest()
    )
    return hmac.compare_digest(my_signature, signature)


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the approval runtime."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class WebhookTransport(ActionTransport):
    """
    Interactivity endpoint served in-process by uvicorn.

    The HTTP 200 goes out before the events are dispatched (FastAPI runs
    background tasks after the response is sent).
    """

    name = "http"

    def __init__(self, signing_secret: str, host: str = "0.0.0.0", port: int = 3000):
        self.signing_secret = signing_secret
        self.host = host
        self.port = port
        self.app = FastAPI(title="slack-approval", docs_url=None, redoc_url=None)
        self._dispatch: ActionDispatcher | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self._register_routes()

    def _register_routes(self):
        """Register the interactivity and health endpoints."""

        @self.app.post("/slack/actions")
        async def slack_actions(request: Request, background_tasks: BackgroundTasks):
            body = await request.body()

            timestamp = request.headers.get("X-Slack-Request-Timestamp", "0")
            signature = request.headers.get("X-Slack-Signature", "")
            if not verify_slack_signature(self.signing_secret, body, timestamp, signature):
                raise HTTPException(status_code=403, detail="Invalid Slack signature")

            form = parse_qs(body.decode("utf-8"))
            try:
                payload = json.loads(form.get("payload", ["{}"])[0])
            except json.JSONDecodeError:
                raise HTTPException(status_code=400, detail="Malformed interaction payload")

            events = parse_block_actions(payload)
            if events:
                background_tasks.add_task(self._dispatch_events, events)
            return {"ok": True}

        @self.app.get("/health")
        async def health():
            return {"status": "ok"}

    async def _dispatch_events(self, events: list[ActionEvent]) -> None:
        # async so it runs on the event loop, not in Starlette's threadpool
        if self._dispatch is None:
            return
        for event in events:
            self._dispatch(event)

    async def start(self, dispatch: ActionDispatcher) -> None:
        self._dispatch = dispatch
        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        self._server = _EmbeddedServer(config)
        self._serve_task = asyncio.create_task(self._serve(), name="webhook-server")

        while not self._server.started:
            if self._serve_task.done():
                # Surfaces the TransportError raised by _serve
                self._serve_task.result()
                raise TransportError(
                    "HTTP server stopped before it started",
                    {"host": self.host, "port": self.port},
                )
            await asyncio.sleep(STARTUP_POLL_SECONDS)
        logger.info("Listening for approval actions on %s:%s/slack/actions", self.host, self.port)

    async def _serve(self) -> None:
        try:
            await self._server.serve()
        except SystemExit as e:
            # uvicorn exits the process when it cannot bind
            raise TransportError(
                f"HTTP server failed to start on {self.host}:{self.port}",
                {"host": self.host, "port": self.port},
            ) from e

    async def stop(self) -> None:
        if self._server:
            self._server.should_exit = True
        if self._serve_task and not self._serve_task.done():
            await self._serve_task


__all__ = ["WebhookTransport", "verify_slack_signature", "SIGNATURE_MAX_AGE_SECONDS"]
