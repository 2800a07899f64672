"""
Unit tests for ApprovalOrchestrator — post/update, event handling and the
single terminal outcome.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from slack_approval.core.exceptions import ErrorCode, SlackDeliveryError
from slack_approval.core.types import (
    ActionEvent,
    ActionKind,
    ApprovalState,
    LifecycleSignal,
    SignalKind,
)


def approve(orchestrator, user, token=None):
    return ActionEvent(
        kind=ActionKind.APPROVE,
        actor_id=user,
        value_token=orchestrator.ledger.correlation_id if token is None else token,
    )


def reject(orchestrator, user):
    return ActionEvent(
        kind=ActionKind.REJECT, actor_id=user, value_token=orchestrator.ledger.correlation_id
    )


def last_payload(messenger) -> dict:
    return messenger.update.await_args.args[2]


def section_texts(payload: dict) -> list[str]:
    return [
        block["text"]["text"]
        for block in payload["blocks"]
        if block["type"] == "section" and "text" in block
    ]


# ---------------------------------------------------------------------------
# start()
# ---------------------------------------------------------------------------


class TestStart:
    @pytest.mark.asyncio
    async def test_posts_new_message_and_reports_ts(self, make_orchestrator, messenger):
        reported = []
        orchestrator = make_orchestrator()
        orchestrator.on_message_ts = reported.append

        ts = await orchestrator.start()

        assert ts == "1700000000.000100"
        assert reported == ["1700000000.000100"]
        channel, payload = messenger.post.await_args.args
        assert channel == "C0APPROVAL"
        assert payload["blocks"][0]["text"]["text"] == "Deploy to production?"
        assert payload["blocks"][-1]["type"] == "actions"
        messenger.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_updates_base_message_when_given(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator(base_message_ts="1699999999.000001")

        ts = await orchestrator.start()

        assert ts == "1699999999.000001"
        messenger.post.assert_not_awaited()
        assert messenger.update.await_args.args[1] == "1699999999.000001"

    @pytest.mark.asyncio
    async def test_falls_back_to_base_ts_when_api_returns_none(self, make_orchestrator, messenger):
        messenger.update = AsyncMock(return_value="")
        orchestrator = make_orchestrator(base_message_ts="1699999999.000001")
        assert await orchestrator.start() == "1699999999.000001"

    @pytest.mark.asyncio
    async def test_post_failure_propagates(self, make_orchestrator, messenger):
        messenger.post = AsyncMock(
            side_effect=SlackDeliveryError("chat.postMessage", "channel_not_found")
        )
        orchestrator = make_orchestrator()
        with pytest.raises(SlackDeliveryError):
            await orchestrator.start()


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class TestHandleAction:
    @pytest.mark.asyncio
    async def test_two_approver_scenario(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator(approvers=["U1", "U2"], quorum=2)
        await orchestrator.start()

        assert await orchestrator.handle_action(approve(orchestrator, "U1")) is None
        pending = last_payload(messenger)
        assert pending["text"] == "Deploy to production?"
        assert "*Remaining approvers:* <@U2>" in section_texts(pending)[1]
        assert not orchestrator.finished

        outcome = await orchestrator.handle_action(approve(orchestrator, "U2"))
        assert outcome.state is ApprovalState.ACCEPTED
        assert outcome.exit_code == 0
        assert outcome.actor_id == "U2"
        assert outcome.message_ts == "1700000000.000100"

        final = last_payload(messenger)
        assert final["text"] == "Deploy approved"
        title = section_texts(final)[1]
        assert "*Approved by:* <@U1>, <@U2>" in title
        assert section_texts(final)[-1] == "Approved by <@U1>, <@U2> :white_check_mark:"
        assert await orchestrator.wait() == outcome

    @pytest.mark.asyncio
    async def test_unrestricted_first_approval_accepts(self, make_orchestrator):
        orchestrator = make_orchestrator()
        await orchestrator.start()
        outcome = await orchestrator.handle_action(approve(orchestrator, "U42"))
        assert outcome.state is ApprovalState.ACCEPTED

    @pytest.mark.asyncio
    async def test_stale_token_ignored(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator()
        await orchestrator.start()

        result = await orchestrator.handle_action(approve(orchestrator, "U1", token="other-run"))

        assert result is None
        messenger.update.assert_not_awaited()
        assert orchestrator.ledger.state is ApprovalState.OPEN

    @pytest.mark.asyncio
    async def test_not_allowed_and_duplicates_do_not_render(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator(approvers=["U1", "U2"], quorum=2)
        await orchestrator.start()

        await orchestrator.handle_action(approve(orchestrator, "U1"))
        assert messenger.update.await_count == 1

        assert await orchestrator.handle_action(approve(orchestrator, "U1")) is None
        assert await orchestrator.handle_action(approve(orchestrator, "U9")) is None
        assert await orchestrator.handle_action(reject(orchestrator, "U9")) is None
        assert messenger.update.await_count == 1

    @pytest.mark.asyncio
    async def test_rejection_renders_fail_variant(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator(approvers=["U1", "U2"], quorum=2)
        await orchestrator.start()
        await orchestrator.handle_action(approve(orchestrator, "U1"))

        outcome = await orchestrator.handle_action(reject(orchestrator, "U2"))

        assert outcome.state is ApprovalState.REJECTED
        assert outcome.exit_code == 1
        final = last_payload(messenger)
        # fail template is empty, so it falls back to the main template
        assert final["text"] == "Deploy to production?"
        texts = section_texts(final)
        assert texts[-1] == "Rejected by <@U2> :x:"
        assert "*Approved by:* <@U1>" in texts[1]

    @pytest.mark.asyncio
    async def test_update_failure_does_not_block_outcome(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator()
        await orchestrator.start()
        messenger.update = AsyncMock(
            side_effect=SlackDeliveryError(
                "chat.update", "ratelimited", ErrorCode.SLACK_UPDATE_FAILED
            )
        )

        outcome = await orchestrator.handle_action(approve(orchestrator, "U1"))

        assert outcome.state is ApprovalState.ACCEPTED
        messenger.update.assert_awaited_once()


# ---------------------------------------------------------------------------
# Lifecycle signals
# ---------------------------------------------------------------------------


class TestHandleSignal:
    @pytest.mark.asyncio
    async def test_cancel_before_approval(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator()
        await orchestrator.start()

        outcome = await orchestrator.handle_signal(LifecycleSignal(SignalKind.CANCEL, "SIGTERM"))

        assert outcome.state is ApprovalState.CANCELED
        assert outcome.exit_code != 0
        assert "Canceled" in section_texts(last_payload(messenger))[-1]

        renders = messenger.update.await_count
        assert await orchestrator.handle_action(approve(orchestrator, "U1")) is None
        assert messenger.update.await_count == renders
        assert orchestrator.outcome is outcome

    @pytest.mark.asyncio
    async def test_timeout_treated_like_cancel(self, make_orchestrator):
        orchestrator = make_orchestrator()
        await orchestrator.start()
        outcome = await orchestrator.handle_signal(LifecycleSignal(SignalKind.TIMEOUT))
        assert outcome.state is ApprovalState.CANCELED

    @pytest.mark.asyncio
    async def test_signal_after_acceptance_ignored(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator()
        await orchestrator.start()
        await orchestrator.handle_action(approve(orchestrator, "U1"))
        renders = messenger.update.await_count

        assert await orchestrator.handle_signal(LifecycleSignal(SignalKind.CANCEL)) is None
        assert messenger.update.await_count == renders
        assert orchestrator.outcome.state is ApprovalState.ACCEPTED


# ---------------------------------------------------------------------------
# Races
# ---------------------------------------------------------------------------


class TestRaces:
    @pytest.mark.asyncio
    async def test_concurrent_terminal_events_yield_one_outcome(self, make_orchestrator, messenger):
        async def slow_update(channel, ts, payload):
            await asyncio.sleep(0.01)
            return ts

        orchestrator = make_orchestrator(approvers=["U1", "U2", "U3"], quorum=1)
        await orchestrator.start()
        messenger.update = AsyncMock(side_effect=slow_update)

        results = await asyncio.gather(
            orchestrator.handle_action(approve(orchestrator, "U1")),
            orchestrator.handle_action(reject(orchestrator, "U2")),
            orchestrator.handle_signal(LifecycleSignal(SignalKind.CANCEL)),
            orchestrator.handle_action(approve(orchestrator, "U3")),
        )

        outcomes = [r for r in results if r is not None]
        assert len(outcomes) == 1
        assert outcomes[0].state is ApprovalState.ACCEPTED
        assert messenger.update.await_count == 1

    @pytest.mark.asyncio
    async def test_stale_pending_render_skipped_after_terminal(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator(approvers=["U1", "U2"], quorum=2)
        await orchestrator.start()

        pending = asyncio.create_task(orchestrator.handle_action(approve(orchestrator, "U1")))
        # Let the pending handler record its approval and queue its render
        async with orchestrator._render_lock:
            await asyncio.sleep(0)
            orchestrator.ledger.cancel()
        await pending

        messenger.update.assert_not_awaited()


class TestRenderFailures:
    @pytest.mark.asyncio
    async def test_unexpected_update_error_still_finishes(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator()
        await orchestrator.start()
        messenger.update = AsyncMock(side_effect=asyncio.TimeoutError())

        outcome = await orchestrator.handle_action(approve(orchestrator, "U1"))

        assert outcome.state is ApprovalState.ACCEPTED
        assert orchestrator.finished
        assert await orchestrator.wait() == outcome

    @pytest.mark.asyncio
    async def test_unexpected_error_on_cancel_still_finishes(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator()
        await orchestrator.start()
        messenger.update = AsyncMock(side_effect=RuntimeError("connection reset"))

        outcome = await orchestrator.handle_signal(LifecycleSignal(SignalKind.CANCEL))

        assert outcome.state is ApprovalState.CANCELED
        assert orchestrator.finished

    @pytest.mark.asyncio
    async def test_cancel_during_post_renders_once_posted(self, make_orchestrator, messenger):
        orchestrator = make_orchestrator()
        posted = asyncio.Event()

        async def slow_post(channel, payload):
            await posted.wait()
            return "1700000000.000100"

        messenger.post = AsyncMock(side_effect=slow_post)
        start = asyncio.create_task(orchestrator.start())
        await asyncio.sleep(0)

        outcome = await orchestrator.handle_signal(LifecycleSignal(SignalKind.CANCEL, "SIGTERM"))
        assert outcome.state is ApprovalState.CANCELED
        messenger.update.assert_not_awaited()

        posted.set()
        assert await start == "1700000000.000100"

        messenger.update.assert_awaited_once()
        final = last_payload(messenger)
        assert "Canceled" in section_texts(final)[-1]
        assert all(block["type"] != "actions" for block in final["blocks"])
