"""
SlackMessenger — posts and updates the approval message via the Web API.

Requires:
  SLACK_BOT_TOKEN — Bot User OAuth Token (xoxb-...) with chat:write
"""

import logging
from typing import Any

import aiohttp
from slack_sdk.errors import SlackApiError, SlackClientError
from slack_sdk.web.async_client import AsyncWebClient

from slack_approval.core.exceptions import ErrorCode, SlackDeliveryError

logger = logging.getLogger(__name__)

# Arguments we set ourselves; a template must not override them
_RESERVED_ARGS = ("channel", "ts")


class SlackMessenger:
    """Thin async wrapper over chat.postMessage / chat.update."""

    def __init__(self, token: str = "", client: AsyncWebClient | None = None):
        self.client = client or AsyncWebClient(token=token)

    @staticmethod
    def _message_args(payload: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in payload.items() if k not in _RESERVED_ARGS}

    async def post(self, channel: str, payload: dict[str, Any]) -> str:
        """Post ``payload`` to ``channel`` and return the new message timestamp."""
        try:
            response = await self.client.chat_postMessage(
                channel=channel, **self._message_args(payload)
            )
        except SlackApiError as e:
            raise SlackDeliveryError(
                "chat.postMessage",
                f"chat.postMessage failed: {e.response.get('error', e)}",
                ErrorCode.SLACK_POST_FAILED,
                {"channel": channel},
            ) from e
        except (SlackClientError, aiohttp.ClientError, TimeoutError) as e:
            raise SlackDeliveryError(
                "chat.postMessage",
                f"chat.postMessage failed: {e}",
                ErrorCode.SLACK_POST_FAILED,
                {"channel": channel},
            ) from e
        ts = response.get("ts") or ""
        logger.debug("Posted approval message to %s (ts=%s)", channel, ts)
        return ts

    async def update(self, channel: str, ts: str, payload: dict[str, Any]) -> str:
        """Replace the message at ``ts``. Returns the timestamp Slack reports back."""
        try:
            response = await self.client.chat_update(
                channel=channel, ts=ts, **self._message_args(payload)
            )
        except SlackApiError as e:
            raise SlackDeliveryError(
                "chat.update",
                f"chat.update failed: {e.response.get('error', e)}",
                ErrorCode.SLACK_UPDATE_FAILED,
                {"channel": channel, "ts": ts},
            ) from e
        except (SlackClientError, aiohttp.ClientError, TimeoutError) as e:
            raise SlackDeliveryError(
                "chat.update",
                f"chat.update failed: {e}",
                ErrorCode.SLACK_UPDATE_FAILED,
                {"channel": channel, "ts": ts},
            ) from e
        return response.get("ts") or ts

    async def close(self) -> None:
        session = getattr(self.client, "session", None)
        if session is not None and not session.closed:
            await session.close()


__all__ = ["SlackMessenger"]
