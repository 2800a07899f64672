"""
Pydantic Settings Configuration
===============================

Type-safe configuration for the approval gate. Everything comes from the
environment of the GitHub Actions step:

1. ``SLACK_*`` credentials and the target channel
2. ``INPUT_*`` action inputs (``approvers``, ``minimumApprovalCount`` ...)
3. ``GITHUB_*`` / ``RUNNER_OS`` run metadata
4. ``SLACK_APPROVAL_*`` runtime knobs (transport, port, log level, timeout)

Malformed JSON inputs never fail the step: they fall back to an empty
value with a warning. Missing credentials and unreachable quorums fail
fast, before anything is sent to Slack.
"""

import json
import re
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from slack_approval.core.exceptions import ConfigurationError, ErrorCode
from slack_approval.core.payload import MessagePayload
from slack_approval.core.structured_logger import get_logger
from slack_approval.core.types import Block

logger = get_logger("Settings")

_CHANGEME_PREFIXES = ("changeme", "change-me", "your_", "your-", "placeholder")
_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def _is_placeholder(value: str) -> bool:
    """Return True if value looks like an unfilled template placeholder."""
    v = value.lower()
    return any(v.startswith(p) for p in _CHANGEME_PREFIXES)


def parse_json_input(raw: str, fallback: Any, label: str) -> Any:
    """
    Parse a JSON action input.

    Blank input yields ``fallback`` silently. Invalid JSON, or JSON of a
    different shape than ``fallback`` (an object where a list is expected),
    yields ``fallback`` with a warning.
    """
    if not raw or not raw.strip():
        return fallback
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse %s, using default value", label, error=str(e))
        return fallback
    if not isinstance(value, type(fallback)):
        logger.warning(
            "Unexpected JSON type for %s, using default value",
            label,
            expected=type(fallback).__name__,
            got=type(value).__name__,
        )
        return fallback
    return value


def join_multiline(raw: str) -> str:
    """Join a multiline action input the way ``core.getMultilineInput(...).join('')`` does."""
    return "".join(line.strip() for line in raw.splitlines() if line.strip())


class SlackConfig(BaseSettings):
    """Slack app credentials and target channel"""
    bot_token: str = Field("", description="Bot User OAuth Token (xoxb-...)")
    signing_secret: str = Field("", description="Signing secret, required for the http transport")
    app_token: str = Field("", description="App-level token (xapp-...), required for socket mode")
    channel_id: str = Field("", description="Channel the approval request is posted to")

    model_config = SettingsConfigDict(env_prefix='SLACK_', extra='ignore')

    @field_validator('bot_token', 'signing_secret', 'app_token')
    @classmethod
    def validate_not_placeholder(cls, v: str, info) -> str:
        if v and _is_placeholder(v):
            raise ValueError(
                f"SLACK_{info.field_name.upper()} is still set to a placeholder value. "
                "Copy the real value from your Slack app settings."
            )
        return v


class GitHubContext(BaseSettings):
    """Metadata of the workflow run waiting for approval"""
    server_url: str = Field("", validation_alias="GITHUB_SERVER_URL")
    repository: str = Field("", validation_alias="GITHUB_REPOSITORY")
    run_id: str = Field("", validation_alias="GITHUB_RUN_ID")
    run_number: str = Field("", validation_alias="GITHUB_RUN_NUMBER")
    run_attempt: str = Field("", validation_alias="GITHUB_RUN_ATTEMPT")
    workflow: str = Field("", validation_alias="GITHUB_WORKFLOW")
    runner_os: str = Field("", validation_alias="RUNNER_OS")
    actor: str = Field("", validation_alias="GITHUB_ACTOR")

    model_config = SettingsConfigDict(extra='ignore', populate_by_name=True)

    @property
    def actions_url(self) -> str:
        return f"{self.server_url}/{self.repository}/actions/runs/{self.run_id}"

    @property
    def correlation_id(self) -> str:
        """Button value unique to this run attempt; clicks carrying anything else are stale."""
        return (
            f"{self.repository}-{self.workflow}-{self.run_id}"
            f"-{self.run_number}-{self.run_attempt}"
        )


class ApprovalInputs(BaseSettings):
    """
    Raw action inputs as GitHub exposes them (``INPUT_<NAME>``).

    Values are kept as strings; the accessors below apply defaults and
    fallbacks so a typo in one template never blocks the approval itself.
    """
    approvers: str = Field("", validation_alias="INPUT_APPROVERS")
    minimum_approval_count: str = Field("", validation_alias="INPUT_MINIMUMAPPROVALCOUNT")
    base_message_ts: str = Field("", validation_alias="INPUT_BASEMESSAGETS")
    custom_blocks: str = Field("[]", validation_alias="INPUT_CUSTOM-BLOCKS")
    base_message_payload: str = Field("", validation_alias="INPUT_BASEMESSAGEPAYLOAD")
    success_message_payload: str = Field("", validation_alias="INPUT_SUCCESSMESSAGEPAYLOAD")
    fail_message_payload: str = Field("", validation_alias="INPUT_FAILMESSAGEPAYLOAD")

    model_config = SettingsConfigDict(extra='ignore', populate_by_name=True)

    @field_validator('approvers', 'minimum_approval_count', 'base_message_ts', 'custom_blocks')
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()

    def approver_ids(self) -> List[str]:
        """Comma-separated user ids, trimmed, blanks and repeats dropped."""
        ids = (value.strip() for value in self.approvers.split(","))
        return list(dict.fromkeys(value for value in ids if value))

    def quorum(self) -> int:
        """``minimumApprovalCount`` as a positive integer, defaulting to 1."""
        if not self.minimum_approval_count:
            return 1
        # Leading integer wins, so "2.5" and "3 approvers" both count
        match = _LEADING_INT.match(self.minimum_approval_count)
        if match is None:
            logger.warning(
                "Invalid minimumApprovalCount, using 1",
                value=self.minimum_approval_count,
            )
            return 1
        count = int(match.group())
        return count if count > 0 else 1

    def custom_block_list(self) -> List[Block]:
        return parse_json_input(self.custom_blocks, [], "custom-blocks")

    def base_payload(self) -> MessagePayload:
        return self._payload(self.base_message_payload, "baseMessagePayload")

    def success_payload(self) -> MessagePayload:
        return self._payload(self.success_message_payload, "successMessagePayload")

    def fail_payload(self) -> MessagePayload:
        return self._payload(self.fail_message_payload, "failMessagePayload")

    @staticmethod
    def _payload(raw: str, label: str) -> MessagePayload:
        return MessagePayload.from_dict(parse_json_input(join_multiline(raw), {}, label))


class Settings(BaseSettings):
    """
    Main application settings.

    Runtime knobs use the ``SLACK_APPROVAL_`` prefix:
      SLACK_APPROVAL_TRANSPORT=http
      SLACK_APPROVAL_HTTP_PORT=3000
      SLACK_APPROVAL_TIMEOUT_SECONDS=3600
    """

    slack: SlackConfig = Field(default_factory=SlackConfig)
    inputs: ApprovalInputs = Field(default_factory=ApprovalInputs)
    github: GitHubContext = Field(default_factory=GitHubContext)

    transport: Literal["socket", "http"] = Field("socket", description="How button clicks reach us")
    http_host: str = Field("0.0.0.0", description="Bind address for the http transport")
    http_port: int = Field(3000, ge=1, le=65535, description="Port for the http transport")
    log_level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    timeout_seconds: Optional[float] = Field(
        None, gt=0, description="Give up and cancel after this many seconds"
    )

    model_config = SettingsConfigDict(env_prefix='SLACK_APPROVAL_', extra='ignore')

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    def validate_required_config(self) -> List[str]:
        """
        Validate that everything needed to reach Slack is present.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        if not self.slack.bot_token:
            errors.append("SLACK_BOT_TOKEN is required")
        if not self.slack.channel_id:
            errors.append("SLACK_CHANNEL_ID is required")
        if self.transport == "socket" and not self.slack.app_token:
            errors.append("SLACK_APP_TOKEN is required for socket mode")
        if self.transport == "http" and not self.slack.signing_secret:
            errors.append("SLACK_SIGNING_SECRET is required for the http transport")
        return errors


def load_settings(**overrides: Any) -> Settings:
    """
    Load and validate settings from the environment.

    Args:
        **overrides: Field values taking precedence over the environment
            (used by CLI options)

    Raises:
        ConfigurationError: If required configuration is missing
    """
    settings = Settings(**{k: v for k, v in overrides.items() if v is not None})

    errors = settings.validate_required_config()
    if errors:
        raise ConfigurationError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors),
            ErrorCode.MISSING_CREDENTIALS,
            {"errors": errors},
        )
    return settings


__all__ = [
    'Settings',
    'SlackConfig',
    'GitHubContext',
    'ApprovalInputs',
    'parse_json_input',
    'join_multiline',
    'load_settings',
]
