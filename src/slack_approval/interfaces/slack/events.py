"""Translate Slack interaction payloads into approval events."""

import logging
from typing import Any

from slack_approval.core.types import (
    APPROVE_ACTION_ID,
    REJECT_ACTION_ID,
    ActionEvent,
    ActionKind,
)

logger = logging.getLogger(__name__)

_ACTION_KINDS = {
    APPROVE_ACTION_ID: ActionKind.APPROVE,
    REJECT_ACTION_ID: ActionKind.REJECT,
}


def parse_block_actions(payload: dict[str, Any]) -> list[ActionEvent]:
    """
    Extract approve/reject button clicks from a ``block_actions`` payload.

    Other interaction types, non-button elements and foreign action ids are
    dropped. The correlation token is not checked here; that is the
    orchestrator's job.
    """
    if payload.get("type") != "block_actions":
        logger.debug("Ignoring interaction of type %s", payload.get("type"))
        return []

    actor_id = (payload.get("user") or {}).get("id", "")
    if not actor_id:
        return []

    events = []
    for action in payload.get("actions") or []:
        if action.get("type") != "button":
            continue
        kind = _ACTION_KINDS.get(action.get("action_id", ""))
        if kind is None:
            logger.debug("Ignoring unknown action %s", action.get("action_id"))
            continue
        events.append(ActionEvent(kind=kind, actor_id=actor_id, value_token=action.get("value", "")))
    return events


__all__ = ["parse_block_actions"]
