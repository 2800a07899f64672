"""
slack-approval — Slack human-in-the-loop approval gate for GitHub Actions.
"""

from importlib import metadata

try:
    __version__ = metadata.version("slack-approval")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = ["__version__"]
