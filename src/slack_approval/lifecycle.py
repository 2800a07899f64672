"""Lifecycle Management — bootstrap, signal handling and the single exit for an approval run."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from dataclasses import dataclass, field

from slack_approval.config.settings import Settings
from slack_approval.core.composer import default_main_payload
from slack_approval.core.ledger import ApprovalLedger
from slack_approval.core.orchestrator import ApprovalOrchestrator, MessageTemplates
from slack_approval.core.structured_logger import CorrelationContext, get_logger
from slack_approval.core.types import ActionEvent, LifecycleSignal, Outcome, SignalKind
from slack_approval.github import set_output
from slack_approval.interfaces.base import ActionTransport, Messenger

logger = get_logger("Lifecycle")

MESSAGE_TS_OUTPUT = "mainMessageTs"

# SIGBREAK only exists on Windows
_CANCEL_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGBREAK") if hasattr(signal, name)
)


def build_templates(settings: Settings) -> MessageTemplates:
    """Resolve main/success/fail templates from the action inputs."""
    inputs = settings.inputs
    return MessageTemplates.resolve(
        base=inputs.base_payload(),
        success=inputs.success_payload(),
        fail=inputs.fail_payload(),
        default=default_main_payload(settings.github, inputs.custom_block_list()),
    )


def build_ledger(settings: Settings) -> ApprovalLedger:
    """Create the ledger. Raises ConfigurationError for an unreachable quorum."""
    return ApprovalLedger(
        correlation_id=settings.github.correlation_id,
        quorum=settings.inputs.quorum(),
        authorized_approvers=settings.inputs.approver_ids(),
    )


def create_messenger(settings: Settings) -> Messenger:
    from slack_approval.interfaces.slack.client import SlackMessenger

    return SlackMessenger(token=settings.slack.bot_token)


def create_transport(settings: Settings) -> ActionTransport:
    if settings.transport == "http":
        from slack_approval.interfaces.slack.webhook import WebhookTransport

        return WebhookTransport(
            signing_secret=settings.slack.signing_secret,
            host=settings.http_host,
            port=settings.http_port,
        )

    from slack_approval.interfaces.slack.socket_mode import SocketModeTransport

    return SocketModeTransport(app_token=settings.slack.app_token)


@dataclass
class RuntimeContext:
    """DI container holding the components of one approval run."""

    settings: Settings
    ledger: ApprovalLedger
    orchestrator: ApprovalOrchestrator
    messenger: Messenger
    transport: ActionTransport

    # Track in-flight handlers
    active_tasks: set[asyncio.Task] = field(default_factory=set)


class Runtime:
    """Runtime orchestrator — bootstrap, signal handling, wait for the outcome, shutdown."""

    def __init__(
        self,
        settings: Settings,
        messenger: Messenger | None = None,
        transport: ActionTransport | None = None,
        output: Callable[[str, str], None] = set_output,
    ):
        self.settings = settings
        self._messenger = messenger
        self._transport = transport
        self._output = output
        self.context: RuntimeContext | None = None
        self._signals_installed: list[int] = []

    def bootstrap(self) -> RuntimeContext:
        """
        Build the ledger, templates and collaborators.

        Runs before any network call, so a bad quorum fails the step
        without a message ever being posted.
        """
        if self.context is not None:
            logger.warning("Runtime already initialized")
            return self.context

        ledger = build_ledger(self.settings)
        templates = build_templates(self.settings)
        messenger = self._messenger or create_messenger(self.settings)
        transport = self._transport or create_transport(self.settings)

        orchestrator = ApprovalOrchestrator(
            ledger=ledger,
            messenger=messenger,
            channel_id=self.settings.slack.channel_id,
            templates=templates,
            base_message_ts=self.settings.inputs.base_message_ts,
            on_message_ts=lambda ts: self._output(MESSAGE_TS_OUTPUT, ts),
        )
        self.context = RuntimeContext(
            settings=self.settings,
            ledger=ledger,
            orchestrator=orchestrator,
            messenger=messenger,
            transport=transport,
        )
        logger.info(
            "Runtime bootstrap completed",
            quorum=ledger.quorum,
            restricted=ledger.restricted,
            transport=transport.name,
        )
        return self.context

    async def run(self) -> Outcome:
        """Post the request, listen for clicks and return the first terminal outcome."""
        context = self.bootstrap()
        with CorrelationContext(context.ledger.correlation_id):
            self._setup_signal_handlers()
            try:
                await context.orchestrator.start()
                if not context.orchestrator.finished:
                    await context.transport.start(self.dispatch)
                return await self._wait_for_outcome()
            finally:
                await self.shutdown()

    def dispatch(self, event: ActionEvent) -> None:
        """Schedule a click for handling. Never blocks the transport's ack."""
        self.track_task(
            asyncio.create_task(self.context.orchestrator.handle_action(event))
        )

    def cancel(self, kind: SignalKind = SignalKind.CANCEL, source: str = "") -> None:
        self.track_task(
            asyncio.create_task(
                self.context.orchestrator.handle_signal(LifecycleSignal(kind=kind, source=source))
            )
        )

    async def _wait_for_outcome(self) -> Outcome:
        orchestrator = self.context.orchestrator
        timeout = self.settings.timeout_seconds
        if timeout is None:
            return await orchestrator.wait()
        try:
            return await asyncio.wait_for(orchestrator.wait(), timeout=timeout)
        except TimeoutError:
            logger.warning("Approval timed out", timeout_seconds=timeout)
            await orchestrator.handle_signal(
                LifecycleSignal(kind=SignalKind.TIMEOUT, source="timeout_seconds")
            )
            return await orchestrator.wait()

    def _setup_signal_handlers(self):
        """Route OS cancellation signals into the ledger."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            signal_name = signal.Signals(signum).name
            logger.info("Received %s, canceling approval", signal_name)
            self.cancel(SignalKind.CANCEL, signal_name)

        for sig in _CANCEL_SIGNALS:
            try:
                loop.add_signal_handler(sig, signal_handler, sig)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(
                    sig, lambda signum, _frame: loop.call_soon_threadsafe(signal_handler, signum)
                )
            self._signals_installed.append(sig)
        logger.debug("Signal handlers registered")

    def _remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in self._signals_installed:
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        self._signals_installed.clear()

    async def shutdown(self):
        """Stop the transport, drop handlers still in flight, close the Slack client."""
        context = self.context
        self._remove_signal_handlers()
        try:
            await asyncio.wait_for(context.transport.stop(), timeout=5.0)
        except Exception as e:
            logger.error("Error stopping transport: %s", e)

        for task in list(context.active_tasks):
            task.cancel()
        if context.active_tasks:
            await asyncio.gather(*context.active_tasks, return_exceptions=True)

        close = getattr(context.messenger, "close", None)
        if close is not None:
            try:
                await close()
            except Exception as e:
                logger.error("Error closing Slack client: %s", e)
        logger.info("Shutdown completed")

    def track_task(self, task: asyncio.Task):
        """Track an active task so shutdown can cancel it."""
        self.context.active_tasks.add(task)
        task.add_done_callback(self.context.active_tasks.discard)


__all__ = [
    "Runtime",
    "RuntimeContext",
    "MESSAGE_TS_OUTPUT",
    "build_ledger",
    "build_templates",
    "create_messenger",
    "create_transport",
]
