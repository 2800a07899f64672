from slack_approval.interfaces.slack.client import SlackMessenger
from slack_approval.interfaces.slack.events import parse_block_actions
from slack_approval.interfaces.slack.socket_mode import SocketModeTransport
from slack_approval.interfaces.slack.webhook import WebhookTransport, verify_slack_signature

__all__ = [
    "SlackMessenger",
    "SocketModeTransport",
    "WebhookTransport",
    "parse_block_actions",
    "verify_slack_signature",
]
