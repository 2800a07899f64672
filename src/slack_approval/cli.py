"""
slack-approval CLI — slack-approval run | render
"""
import asyncio
import json
import sys

import click
from pydantic import ValidationError

from slack_approval.config.settings import Settings, load_settings
from slack_approval.core.composer import merge, render_status
from slack_approval.core.exceptions import ApprovalError
from slack_approval.core.structured_logger import configure_logging
from slack_approval.github import set_failed
from slack_approval.lifecycle import Runtime, build_ledger, build_templates


@click.group()
@click.version_option(package_name="slack-approval")
def cli() -> None:
    """Slack approval gate for GitHub Actions."""
    pass


@cli.command()
@click.option(
    "--transport",
    type=click.Choice(["socket", "http"]),
    default=None,
    help="How button clicks are received (default: socket)",
)
@click.option("--port", type=int, default=None, help="Port for the http transport")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=float,
    default=None,
    help="Cancel the request after this many seconds",
)
def run(transport: str | None, port: int | None, timeout_seconds: float | None) -> None:
    """Post the approval request and wait for a decision."""
    try:
        settings = load_settings(
            transport=transport, http_port=port, timeout_seconds=timeout_seconds
        )
        configure_logging(settings.log_level)
        outcome = asyncio.run(Runtime(settings).run())
    except ApprovalError as e:
        set_failed(e.user_message())
        sys.exit(1)
    except ValidationError as e:
        set_failed(f"Invalid configuration: {e}")
        sys.exit(1)
    except Exception as e:
        set_failed(str(e) or e.__class__.__name__)
        sys.exit(1)

    click.echo(f"Approval {outcome.state.value}")
    sys.exit(outcome.exit_code)


@cli.command()
@click.option(
    "--variant",
    type=click.Choice(["main", "success", "fail"]),
    default="main",
    help="Template to render the current status into",
)
def render(variant: str) -> None:
    """Print the initial message payload as JSON without contacting Slack."""
    try:
        settings = Settings()
        ledger = build_ledger(settings)
    except ApprovalError as e:
        set_failed(e.user_message())
        sys.exit(1)

    templates = build_templates(settings)
    payload = merge(getattr(templates, variant), render_status(ledger.snapshot()))
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
