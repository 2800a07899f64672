"""
Custom Exceptions for slack-approval
====================================

Structured error handling so the runtime can report failures by type
rather than by parsing strings.

Error Codes:
- 1xxx: Input errors (action inputs, payload templates)
- 2xxx: Configuration errors (credentials, quorum)
- 3xxx: Slack API errors (post, update)
- 4xxx: Transport errors (socket mode, webhook)
- 5xxx: System errors (internal, unexpected)
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Structured error codes for workflow annotations"""

    # 1xxx: Input Errors
    INVALID_INPUT = 1001
    INVALID_PAYLOAD = 1002

    # 2xxx: Configuration Errors
    CONFIGURATION_ERROR = 2001
    MISSING_CREDENTIALS = 2002
    QUORUM_UNREACHABLE = 2003

    # 3xxx: Slack API Errors
    SLACK_POST_FAILED = 3001
    SLACK_UPDATE_FAILED = 3002

    # 4xxx: Transport Errors
    TRANSPORT_FAILED = 4001
    INVALID_SIGNATURE = 4002

    # 5xxx: System Errors
    INTERNAL_ERROR = 5001


class ApprovalError(Exception):
    """Base exception for all slack-approval errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': int(self.error_code),
            'message': self.message,
            'details': self.details
        }

    def user_message(self) -> str:
        """Get the message shown in the workflow run annotation"""
        return f"Error {int(self.error_code)}: {self.message}"


class ConfigurationError(ApprovalError):
    """Raised when inputs or credentials cannot produce a working gate"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class SlackDeliveryError(ApprovalError):
    """Raised when chat.postMessage or chat.update fails"""

    def __init__(
        self,
        method: str,
        message: str,
        error_code: ErrorCode = ErrorCode.SLACK_POST_FAILED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
        self.method = method


class TransportError(ApprovalError):
    """Raised when the interaction transport cannot be started"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.TRANSPORT_FAILED, details)
