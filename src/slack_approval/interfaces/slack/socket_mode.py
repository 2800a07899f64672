"""
SocketModeTransport

Receives button clicks over a Socket Mode websocket, so the runner needs
no inbound network access.

Requires:
  SLACK_APP_TOKEN — App-level token (xapp-...) with connections:write

Setup:
  1. Enable Socket Mode in the Slack app settings
  2. Enable Interactivity (no request URL needed in Socket Mode)
  3. Generate an app-level token with the connections:write scope
"""

import logging

from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from slack_approval.core.exceptions import TransportError
from slack_approval.interfaces.base import ActionDispatcher, ActionTransport
from slack_approval.interfaces.slack.events import parse_block_actions

logger = logging.getLogger(__name__)


class SocketModeTransport(ActionTransport):
    """Socket Mode listener for Block Kit interactions."""

    name = "socket"

    def __init__(
        self,
        app_token: str,
        web_client: AsyncWebClient | None = None,
        client: SocketModeClient | None = None,
    ):
        self.client = client or SocketModeClient(app_token=app_token, web_client=web_client)
        self._dispatch: ActionDispatcher | None = None

    async def start(self, dispatch: ActionDispatcher) -> None:
        self._dispatch = dispatch
        self.client.socket_mode_request_listeners.append(self._on_request)
        try:
            await self.client.connect()
        except Exception as e:
            raise TransportError(f"Socket Mode connection failed: {e}") from e
        logger.info("Socket Mode connected, listening for approval actions")

    async def stop(self) -> None:
        await self.client.close()
        logger.info("Socket Mode connection closed")

    async def _on_request(self, client: SocketModeClient, req: SocketModeRequest) -> None:
        # Acknowledge first; Slack retries envelopes not acked within 3 seconds
        await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))

        if req.type != "interactive" or self._dispatch is None:
            return
        for event in parse_block_actions(req.payload):
            self._dispatch(event)


__all__ = ["SocketModeTransport"]
