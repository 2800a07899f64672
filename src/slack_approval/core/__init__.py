"""
slack_approval.core — ledger, composer and orchestrator of the approval gate.
"""

from .exceptions import (
    ApprovalError,
    ConfigurationError,
    ErrorCode,
    SlackDeliveryError,
    TransportError,
)
from .ledger import ApprovalLedger, LedgerSnapshot, LedgerUpdate
from .orchestrator import ApprovalOrchestrator, MessageTemplates
from .payload import MessagePayload, resolve_variant
from .types import (
    ActionEvent,
    ActionKind,
    ApprovalResult,
    ApprovalState,
    LifecycleSignal,
    Outcome,
    SignalKind,
)

__all__ = [
    'ApprovalLedger',
    'LedgerSnapshot',
    'LedgerUpdate',
    'ApprovalOrchestrator',
    'MessageTemplates',
    'MessagePayload',
    'resolve_variant',
    'ActionEvent',
    'ActionKind',
    'ApprovalResult',
    'ApprovalState',
    'LifecycleSignal',
    'Outcome',
    'SignalKind',
    'ApprovalError',
    'ConfigurationError',
    'ErrorCode',
    'SlackDeliveryError',
    'TransportError',
]
