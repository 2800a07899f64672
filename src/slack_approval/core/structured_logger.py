"""
Structured Logging with Correlation IDs
=======================================

Provides JSON-structured logging tagged with the approval run's
correlation id, so every line emitted while a workflow waits on Slack can
be matched to the run (and its buttons) that produced it.
"""

import json
import logging
import re
from contextvars import ContextVar
from datetime import UTC, datetime

# Correlation id of the approval run currently being handled
_correlation_id_var: ContextVar[str | None] = ContextVar('correlation_id', default=None)

_SECRET_PATTERNS = re.compile(
    r"(xox[abpr]-[A-Za-z0-9-]+|xapp-[A-Za-z0-9-]+|"
    r"gh[pousr]_[A-Za-z0-9]+|Bearer\s+[A-Za-z0-9._~+/=-]+)",
    re.IGNORECASE,
)


def _redact_secrets(text: str) -> str:
    return _SECRET_PATTERNS.sub("[REDACTED]", text)


class StructuredLogger:
    """
    Structured logger that outputs JSON logs with correlation IDs

    Example output:
    {
        "timestamp": "2026-03-02T10:30:45.123Z",
        "level": "INFO",
        "correlation_id": "octo/app-deploy-42-7-1",
        "component": "Orchestrator",
        "message": "Approval recorded",
        "user_id": "U0123",
        "result": "pending"
    }
    """

    def __init__(self, component: str, logger: logging.Logger | None = None) -> None:
        """
        Initialize structured logger

        Args:
            component: Component name (e.g., 'Ledger', 'Orchestrator', 'Runtime')
            logger: Optional existing logger (creates new if not provided)
        """
        self.component = component
        self.logger = logger or logging.getLogger(f"slack_approval.{component}")

    def _log(self, level: str, message: str, *args, **kwargs) -> None:
        """
        Internal logging method

        Args:
            level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
            message: Log message, %-formatted with args when given
            **kwargs: Additional structured fields
        """
        log_method = getattr(self.logger, level.lower())
        if not self.logger.isEnabledFor(getattr(logging, level)):
            return

        if args:
            message = message % args

        log_entry = {
            'timestamp': datetime.now(tz=UTC).isoformat(),
            'level': level,
            'component': self.component,
            'message': _redact_secrets(message),
        }

        correlation_id = _correlation_id_var.get()
        if correlation_id:
            log_entry['correlation_id'] = correlation_id

        # Add additional fields, redacting string values
        for k, v in kwargs.items():
            log_entry[k] = _redact_secrets(v) if isinstance(v, str) else v

        log_method(_redact_secrets(json.dumps(log_entry, default=str)))

    def debug(self, message: str, *args, **kwargs) -> None:
        """Log debug message"""
        self._log('DEBUG', message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        """Log info message"""
        self._log('INFO', message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        """Log warning message"""
        self._log('WARNING', message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        """Log error message"""
        self._log('ERROR', message, *args, **kwargs)

    def critical(self, message: str, *args, **kwargs) -> None:
        """Log critical message"""
        self._log('CRITICAL', message, *args, **kwargs)


class CorrelationContext:
    """
    Context manager binding a correlation id to all logs emitted inside it

    Usage:
        with CorrelationContext(github.correlation_id):
            logger.info("Posting approval request")
    """

    def __init__(self, correlation_id: str) -> None:
        self.correlation_id = correlation_id
        self.token = None

    def __enter__(self) -> str:
        self.token = _correlation_id_var.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _correlation_id_var.reset(self.token)


def current_correlation_id() -> str | None:
    """Return the correlation id bound to the current context, if any."""
    return _correlation_id_var.get()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_logger(component: str) -> StructuredLogger:
    """
    Get a structured logger for a component

    Args:
        component: Component name

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(component)


def configure_logging(level: str = "INFO") -> None:
    """Route slack_approval and slack_sdk logs to stderr at the given level."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )
    # slack_sdk is chatty at DEBUG; keep it one notch quieter than ours
    if level.upper() == "DEBUG":
        logging.getLogger("slack_sdk").setLevel(logging.INFO)
