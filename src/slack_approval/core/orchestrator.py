"""
Orchestrator
============

Connects inbound button clicks and lifecycle signals to the ledger, renders
the result through the composer and pushes it to Slack.

The orchestrator never exits the process. The one handler whose ledger
update moved the run out of OPEN produces an ``Outcome``; the runtime waits
for that outcome and turns it into the exit code.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from slack_approval.core.composer import (
    merge,
    render_canceled,
    render_rejected,
    render_status,
    render_title,
)
from slack_approval.core.exceptions import SlackDeliveryError
from slack_approval.core.ledger import ApprovalLedger, LedgerUpdate
from slack_approval.core.payload import MessagePayload, resolve_variant
from slack_approval.core.structured_logger import get_logger
from slack_approval.core.types import (
    ActionEvent,
    ActionKind,
    ApprovalResult,
    ApprovalState,
    Block,
    LifecycleSignal,
    Outcome,
)
from slack_approval.interfaces.base import Messenger

logger = get_logger("Orchestrator")

# Classifications that leave the displayed message untouched
_IGNORED_RESULTS = frozenset({
    ApprovalResult.NOT_ALLOWED,
    ApprovalResult.ALREADY_APPROVED,
    ApprovalResult.CLOSED,
})


@dataclass(frozen=True)
class MessageTemplates:
    """Resolved main/success/fail templates for one run."""

    main: MessagePayload
    success: MessagePayload
    fail: MessagePayload

    @classmethod
    def resolve(
        cls,
        base: MessagePayload,
        success: MessagePayload,
        fail: MessagePayload,
        default: MessagePayload,
    ) -> MessageTemplates:
        main = resolve_variant(base, default)
        return cls(
            main=main,
            success=resolve_variant(success, main),
            fail=resolve_variant(fail, main),
        )


class ApprovalOrchestrator:
    """Drives one approval run from the initial post to its terminal outcome."""

    def __init__(
        self,
        ledger: ApprovalLedger,
        messenger: Messenger,
        channel_id: str,
        templates: MessageTemplates,
        base_message_ts: str = "",
        on_message_ts: Callable[[str], None] | None = None,
    ) -> None:
        self.ledger = ledger
        self.messenger = messenger
        self.channel_id = channel_id
        self.templates = templates
        self.base_message_ts = base_message_ts
        self.on_message_ts = on_message_ts
        self.message_ts = ""
        self.outcome: Outcome | None = None
        self._finished = asyncio.Event()
        self._render_lock = asyncio.Lock()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    async def start(self) -> str:
        """
        Post the approval request, or update ``base_message_ts`` when given.

        The resulting timestamp is reported through ``on_message_ts`` right
        away so chained steps can reuse the message whatever the outcome.
        Delivery errors propagate: without a message there is nothing to
        approve.
        """
        payload = merge(self.templates.main, render_status(self.ledger.snapshot()))
        if self.base_message_ts:
            logger.info("Updating existing approval message", ts=self.base_message_ts)
            ts = await self.messenger.update(self.channel_id, self.base_message_ts, payload)
        else:
            logger.info("Posting approval request", channel=self.channel_id)
            ts = await self.messenger.post(self.channel_id, payload)

        self.message_ts = ts or self.base_message_ts
        if self.on_message_ts is not None:
            self.on_message_ts(self.message_ts)

        # A cancel that landed while the post was in flight could not render yet
        snapshot = self.ledger.snapshot()
        if snapshot.state is ApprovalState.CANCELED:
            logger.warning("Approval canceled before the request was posted", ts=self.message_ts)
            async with self._render_lock:
                await self._push(
                    merge(self.templates.fail, [render_title(snapshot), render_canceled()])
                )
            return self.message_ts

        logger.info("Waiting for approval", ts=self.message_ts, quorum=self.ledger.quorum)
        return self.message_ts

    async def handle_action(self, event: ActionEvent) -> Outcome | None:
        """Apply one button click. Returns the outcome if this click ended the run."""
        if event.value_token != self.ledger.correlation_id:
            logger.debug("Ignoring click from another run", actor_id=event.actor_id)
            return None

        if event.kind is ActionKind.APPROVE:
            update = self.ledger.record_approval(event.actor_id)
            if update.result in _IGNORED_RESULTS:
                logger.debug(
                    "Ignoring approval", actor_id=event.actor_id, result=str(update.result)
                )
                return None
            template = (
                self.templates.success
                if update.result is ApprovalResult.ACCEPTED
                else self.templates.main
            )
            status = render_status(update.snapshot)
        else:
            update = self.ledger.record_rejection(event.actor_id)
            if update.result in _IGNORED_RESULTS:
                logger.debug(
                    "Ignoring rejection", actor_id=event.actor_id, result=str(update.result)
                )
                return None
            template = self.templates.fail
            status = [render_title(update.snapshot), render_rejected(event.actor_id)]

        await self._render(template, status, update)
        if update.transitioned:
            return self._finish(update.state, event.actor_id)
        return None

    async def handle_signal(self, signal: LifecycleSignal) -> Outcome | None:
        """Cancel the run. Returns the outcome unless the run had already ended."""
        update = self.ledger.cancel()
        if not update.transitioned:
            logger.debug("Ignoring %s signal, run already finished", signal.kind.value)
            return None

        logger.warning("Approval canceled", signal=signal.kind.value, source=signal.source)
        await self._render(
            self.templates.fail, [render_title(update.snapshot), render_canceled()], update
        )
        return self._finish(ApprovalState.CANCELED)

    async def wait(self) -> Outcome:
        await self._finished.wait()
        return self.outcome

    async def _render(
        self, template: MessagePayload, status: Sequence[Block], update: LedgerUpdate
    ) -> None:
        if not self.message_ts:
            return
        async with self._render_lock:
            # A slower pending render must not overwrite the final message
            if not update.transitioned and self.ledger.state.is_terminal:
                return
            await self._push(merge(template, status))

    async def _push(self, payload: dict) -> None:
        # The ledger decides the outcome; a failed update only costs the display
        try:
            await self.messenger.update(self.channel_id, self.message_ts, payload)
        except SlackDeliveryError as e:
            logger.error("Failed to update approval message", error=e.to_dict())
        except Exception as e:
            logger.error(
                "Unexpected error updating approval message",
                error=str(e) or e.__class__.__name__,
                error_type=e.__class__.__name__,
            )

    def _finish(self, state: ApprovalState, actor_id: str | None = None) -> Outcome:
        outcome = Outcome(state=state, message_ts=self.message_ts, actor_id=actor_id)
        if self.outcome is None:
            self.outcome = outcome
            self._finished.set()
            logger.info("Approval finished", state=str(state), actor_id=actor_id)
        return outcome


__all__ = ["ApprovalOrchestrator", "MessageTemplates"]
