"""Message payload model: text, blocks and passthrough fields for chat.postMessage."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from slack_approval.core.types import Block


@dataclass(frozen=True)
class MessagePayload:
    """
    A Slack message template.

    ``extra`` holds every other chat.postMessage argument (``attachments``,
    ``unfurl_links``, ``icon_emoji`` ...) and is passed through untouched.
    """

    text: str | None = None
    blocks: tuple[Block, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MessagePayload:
        if not data:
            return cls()
        data = dict(data)
        text = data.pop("text", None)
        blocks = data.pop("blocks", None)
        return cls(
            text=text if isinstance(text, str) else None,
            blocks=tuple(copy.deepcopy(blocks)) if isinstance(blocks, list) else (),
            extra=copy.deepcopy(data),
        )

    def has_content(self) -> bool:
        return bool(self.text) or len(self.blocks) > 0

    def to_dict(self) -> dict[str, Any]:
        data = copy.deepcopy(self.extra)
        if self.text is not None:
            data["text"] = self.text
        data["blocks"] = copy.deepcopy(list(self.blocks))
        return data


def resolve_variant(explicit: MessagePayload, base: MessagePayload) -> MessagePayload:
    """Return ``explicit`` if it carries text or blocks, otherwise fall back to ``base``."""
    return explicit if explicit.has_content() else base


__all__ = ['MessagePayload', 'resolve_variant']
