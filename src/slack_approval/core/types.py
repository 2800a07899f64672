"""
Core Type Definitions
=====================

Centralized type definitions for the approval gate: ledger states, the
classifications returned by ledger operations, inbound events and the
terminal outcome handed to the runtime.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

Block = dict[str, Any]

APPROVE_ACTION_ID = "slack-approval-approve"
REJECT_ACTION_ID = "slack-approval-reject"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ApprovalState(str, Enum):
    """Lifecycle state of an approval request. Everything but OPEN is terminal."""

    OPEN = "open"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self is not ApprovalState.OPEN

    def __str__(self) -> str:
        return self.value


class ApprovalResult(str, Enum):
    """Classification of a single ledger operation."""

    ACCEPTED = "accepted"
    PENDING = "pending"
    NOT_ALLOWED = "not-allowed"
    ALREADY_APPROVED = "already-approved"
    REJECTED = "rejected"
    CANCELED = "canceled"
    # The ledger was already terminal; nothing was recorded
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


class ActionKind(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class SignalKind(str, Enum):
    CANCEL = "cancel"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ActionEvent:
    """A button click delivered by a transport."""
    kind: ActionKind
    actor_id: str
    value_token: str


@dataclass(frozen=True)
class LifecycleSignal:
    """Cancellation or timeout delivered by the execution environment."""
    kind: SignalKind
    source: str = ""


@dataclass(frozen=True)
class Outcome:
    """Terminal result of an approval run, acted upon exactly once."""
    state: ApprovalState
    message_ts: str = ""
    actor_id: str | None = None

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS if self.state is ApprovalState.ACCEPTED else EXIT_FAILURE


__all__ = [
    'Block',
    'APPROVE_ACTION_ID',
    'REJECT_ACTION_ID',
    'EXIT_SUCCESS',
    'EXIT_FAILURE',
    'ApprovalState',
    'ApprovalResult',
    'ActionKind',
    'SignalKind',
    'ActionEvent',
    'LifecycleSignal',
    'Outcome',
]
