"""
Message Composer
================

Pure rendering layer. Turns ledger snapshots into Block Kit status blocks
and merges them into the effective chat.postMessage / chat.update payload.

Nothing in this module performs I/O, and no function mutates its inputs:
the same snapshot and template always render to the same structure.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from slack_approval.core.ledger import LedgerSnapshot
from slack_approval.core.payload import MessagePayload, resolve_variant
from slack_approval.core.types import APPROVE_ACTION_ID, REJECT_ACTION_ID, Block

if TYPE_CHECKING:
    from slack_approval.config.settings import GitHubContext

DEFAULT_MESSAGE_TEXT = "GitHub Actions Approval request"
DEFAULT_HEADER_TEXT = "GitHub Actions Approval Request"


# =============================================================================
# BLOCK BUILDERS
# =============================================================================

def section(text: str) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def fields_section(fields: Iterable[tuple[str, str]]) -> Block:
    return {
        "type": "section",
        "fields": [{"type": "mrkdwn", "text": f"*{label}:*\n{value}"} for label, value in fields],
    }


def divider() -> Block:
    return {"type": "divider"}


def button(text: str, action_id: str, value: str, style: str) -> Block:
    return {
        "type": "button",
        "text": {"type": "plain_text", "emoji": True, "text": text},
        "style": style,
        "value": value,
        "action_id": action_id,
    }


def actions(*elements: Block) -> Block:
    return {"type": "actions", "elements": list(elements)}


def format_mentions(user_ids: Sequence[str]) -> str:
    return ", ".join(f"<@{user_id}>" for user_id in user_ids)


# =============================================================================
# STATUS RENDERING
# =============================================================================

def render_title(snapshot: LedgerSnapshot) -> Block:
    """Quorum summary: required, remaining, who may still approve, who did."""
    lines = [
        f"*Required approvals:* {snapshot.quorum}",
        f"*Remaining approvals:* {snapshot.remaining_approvals}",
    ]
    if snapshot.restricted:
        lines.append(
            f"*Remaining approvers:* {format_mentions(snapshot.remaining_approvers) or 'None'}"
        )
    approved = format_mentions(snapshot.approved_by)
    if approved:
        lines.append(f"*Approved by:* {approved}")
    return section("\n".join(lines))


def render_body(snapshot: LedgerSnapshot) -> Block:
    """Approval confirmation once quorum is reached, Approve/Reject buttons until then."""
    if snapshot.quorum_reached:
        approved = format_mentions(snapshot.approved_by)
        if approved:
            return section(f"Approved by {approved} :white_check_mark:")
        return section("Approved :white_check_mark:")

    return actions(
        button("Approve", APPROVE_ACTION_ID, snapshot.correlation_id, "primary"),
        button("Reject", REJECT_ACTION_ID, snapshot.correlation_id, "danger"),
    )


def render_rejected(user_id: str | None = None) -> Block:
    if user_id:
        return section(f"Rejected by <@{user_id}> :x:")
    return section("Rejected :x:")


def render_canceled() -> Block:
    return section("Canceled :radio_button: :leftwards_arrow_with_hook:")


def render_status(snapshot: LedgerSnapshot) -> list[Block]:
    return [render_title(snapshot), render_body(snapshot)]


# =============================================================================
# PAYLOAD MERGING
# =============================================================================

def merge(payload: MessagePayload, status_blocks: Sequence[Block]) -> dict[str, Any]:
    """
    Build the effective message from a template and the status blocks.

    Template blocks come first when there are any; otherwise non-blank
    template text is promoted to a section so the status still has context.
    The status blocks are always appended, so the buttons stay visible no
    matter how bare the template is.
    """
    if payload.blocks:
        blocks = copy.deepcopy(list(payload.blocks))
    elif payload.text and payload.text.strip():
        blocks = [section(payload.text)]
    else:
        blocks = []
    blocks.extend(copy.deepcopy(list(status_blocks)))

    merged = copy.deepcopy(payload.extra)
    if payload.text is not None:
        merged["text"] = payload.text
    merged["blocks"] = blocks
    return merged


def default_main_payload(
    github: GitHubContext, custom_blocks: Sequence[Block] = ()
) -> MessagePayload:
    """Run summary used when no baseMessagePayload is supplied."""
    header = [
        section(DEFAULT_HEADER_TEXT),
        fields_section([
            ("GitHub Actor", github.actor),
            ("Repos", f"{github.server_url}/{github.repository}"),
            ("Actions URL", github.actions_url),
            ("GITHUB_RUN_ID", github.run_id),
            ("Workflow", github.workflow),
            ("RunnerOS", github.runner_os),
        ]),
        divider(),
    ]
    return MessagePayload(
        text=DEFAULT_MESSAGE_TEXT,
        blocks=tuple(header + copy.deepcopy(list(custom_blocks))),
    )


__all__ = [
    'section',
    'fields_section',
    'divider',
    'button',
    'actions',
    'format_mentions',
    'render_title',
    'render_body',
    'render_rejected',
    'render_canceled',
    'render_status',
    'merge',
    'default_main_payload',
    'resolve_variant',
]
