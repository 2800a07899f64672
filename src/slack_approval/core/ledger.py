"""
Approval Ledger
===============

Owns the quorum, the optional approver allow-list and the ordered record of
distinct approvals for one workflow run.

Every operation that can end the run goes through a single check-and-set on
``state`` guarded by a lock. Exactly one caller ever sees ``transitioned``
set on its update; that caller alone renders the final message and produces
the exit outcome. Everyone after it gets ``ApprovalResult.CLOSED``.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

from slack_approval.core.exceptions import ConfigurationError, ErrorCode
from slack_approval.core.structured_logger import get_logger
from slack_approval.core.types import ApprovalResult, ApprovalState

logger = get_logger("Ledger")


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable view of the ledger taken inside the critical section."""

    correlation_id: str
    quorum: int
    authorized_approvers: tuple[str, ...]
    approved_by: tuple[str, ...]
    remaining_approvers: tuple[str, ...]
    state: ApprovalState

    @property
    def restricted(self) -> bool:
        return len(self.authorized_approvers) > 0

    @property
    def remaining_approvals(self) -> int:
        return max(0, self.quorum - len(self.approved_by))

    @property
    def quorum_reached(self) -> bool:
        return len(self.approved_by) >= self.quorum


@dataclass(frozen=True)
class LedgerUpdate:
    """Result of one ledger operation."""

    result: ApprovalResult
    transitioned: bool
    snapshot: LedgerSnapshot

    @property
    def state(self) -> ApprovalState:
        return self.snapshot.state


class ApprovalLedger:
    """Mutable approval record for a single workflow run."""

    def __init__(
        self,
        correlation_id: str,
        quorum: int = 1,
        authorized_approvers: Iterable[str] = (),
    ) -> None:
        if quorum < 1:
            raise ConfigurationError(
                "minimumApprovalCount must be at least 1",
                ErrorCode.QUORUM_UNREACHABLE,
                {"minimum_approval_count": quorum},
            )
        # dict.fromkeys keeps first-seen order while dropping repeats
        approvers = tuple(dict.fromkeys(a for a in authorized_approvers if a))
        if approvers and quorum > len(approvers):
            raise ConfigurationError(
                "minimumApprovalCount cannot be greater than the number of approvers",
                ErrorCode.QUORUM_UNREACHABLE,
                {"minimum_approval_count": quorum, "approvers": len(approvers)},
            )

        self.correlation_id = correlation_id
        self.quorum = quorum
        self.authorized_approvers = approvers
        self._approved_by: list[str] = []
        self._remaining: list[str] = list(approvers)
        self._state = ApprovalState.OPEN
        self._lock = threading.Lock()

    @property
    def restricted(self) -> bool:
        return len(self.authorized_approvers) > 0

    @property
    def state(self) -> ApprovalState:
        return self._state

    @property
    def approved_by(self) -> tuple[str, ...]:
        return tuple(self._approved_by)

    @property
    def remaining_approvers(self) -> tuple[str, ...]:
        return tuple(self._remaining)

    def is_authorized(self, user_id: str) -> bool:
        return not self.restricted or user_id in self.authorized_approvers

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            correlation_id=self.correlation_id,
            quorum=self.quorum,
            authorized_approvers=self.authorized_approvers,
            approved_by=tuple(self._approved_by),
            remaining_approvers=tuple(self._remaining),
            state=self._state,
        )

    def _update(self, result: ApprovalResult, transitioned: bool = False) -> LedgerUpdate:
        return LedgerUpdate(result=result, transitioned=transitioned, snapshot=self._snapshot())

    def _close(self, state: ApprovalState) -> bool:
        """Move OPEN to ``state``. Caller must hold the lock."""
        if self._state is not ApprovalState.OPEN:
            return False
        self._state = state
        return True

    def record_approval(self, user_id: str) -> LedgerUpdate:
        with self._lock:
            if self._state.is_terminal:
                return self._update(ApprovalResult.CLOSED)
            if not self.is_authorized(user_id):
                return self._update(ApprovalResult.NOT_ALLOWED)
            if user_id in self._approved_by:
                return self._update(ApprovalResult.ALREADY_APPROVED)

            self._approved_by.append(user_id)
            if user_id in self._remaining:
                self._remaining.remove(user_id)

            if len(self._approved_by) < self.quorum:
                update = self._update(ApprovalResult.PENDING)
            else:
                update = self._update(
                    ApprovalResult.ACCEPTED, self._close(ApprovalState.ACCEPTED)
                )

        logger.info(
            "Approval recorded",
            user_id=user_id,
            result=str(update.result),
            approvals=len(update.snapshot.approved_by),
            quorum=self.quorum,
        )
        return update

    def record_rejection(self, user_id: str) -> LedgerUpdate:
        with self._lock:
            if self._state.is_terminal:
                return self._update(ApprovalResult.CLOSED)
            if not self.is_authorized(user_id):
                return self._update(ApprovalResult.NOT_ALLOWED)
            update = self._update(ApprovalResult.REJECTED, self._close(ApprovalState.REJECTED))

        logger.info("Rejection recorded", user_id=user_id)
        return update

    def cancel(self) -> LedgerUpdate:
        with self._lock:
            if self._state.is_terminal:
                return self._update(ApprovalResult.CLOSED)
            return self._update(ApprovalResult.CANCELED, self._close(ApprovalState.CANCELED))


__all__ = ['ApprovalLedger', 'LedgerSnapshot', 'LedgerUpdate']
