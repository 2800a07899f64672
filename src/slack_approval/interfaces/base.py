"""
Collaborator interfaces — what the orchestrator needs from Slack.

``Messenger`` posts and updates the approval message. ``ActionTransport``
delivers button clicks; implementations acknowledge each interaction to
Slack before handing the parsed events to ``dispatch``, and ``dispatch``
only schedules work, so the acknowledgment never waits on a chat.update.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol

from slack_approval.core.types import ActionEvent

ActionDispatcher = Callable[[ActionEvent], None]


class Messenger(Protocol):
    async def post(self, channel: str, payload: dict[str, Any]) -> str:
        """Post a new message and return its timestamp."""
        ...

    async def update(self, channel: str, ts: str, payload: dict[str, Any]) -> str:
        """Replace the content of the message at ``ts`` and return its timestamp."""
        ...


class ActionTransport(ABC):
    """Receives Block Kit interactions and forwards approve/reject clicks."""

    name: str = "transport"

    @abstractmethod
    async def start(self, dispatch: ActionDispatcher) -> None:
        """Begin receiving interactions. Returns once the transport is listening."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop receiving interactions and release connections."""


__all__ = ["ActionDispatcher", "Messenger", "ActionTransport"]
