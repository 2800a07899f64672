"""GitHub Actions workflow commands: step outputs and failure annotations."""

import os
import sys
import uuid
from pathlib import Path

from slack_approval.core.structured_logger import get_logger

logger = get_logger("GitHub")


def set_output(name: str, value: str) -> None:
    """
    Expose ``value`` as step output ``name``.

    Appends to the ``$GITHUB_OUTPUT`` file. Multi-line values use a random
    heredoc delimiter. Outside of Actions the legacy workflow command is
    printed instead so the value still shows up in the log.
    """
    output_file = os.getenv("GITHUB_OUTPUT", "")
    if not output_file:
        print(f"::set-output name={name}::{value}")
        return

    if "\n" in value:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
    else:
        entry = f"{name}={value}\n"

    with Path(output_file).open("a", encoding="utf-8") as f:
        f.write(entry)
    logger.debug("Step output written", name=name)


def _escape_data(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def set_failed(message: str) -> None:
    """Print an error annotation for the step. The caller decides the exit code."""
    print(f"::error::{_escape_data(message)}", file=sys.stdout, flush=True)


__all__ = ["set_output", "set_failed"]
