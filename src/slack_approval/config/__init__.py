from slack_approval.config.settings import (
    ApprovalInputs,
    GitHubContext,
    Settings,
    SlackConfig,
    load_settings,
)

__all__ = ["Settings", "SlackConfig", "GitHubContext", "ApprovalInputs", "load_settings"]
