"""GitHub Actions workflow-command helpers.

Annotations go to stderr, plain info lines to stdout. Outputs and the step
summary are appended to the files the runner hands us.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from uuid import uuid4


def escape_data(message: object) -> str:
    """Encode a command payload so it cannot break onto a new command line."""
    return str(message).replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def info(message: str) -> None:
    """Info."""
    print(message, flush=True)


def notice(message: str) -> None:
    """Notice."""
    print(f"::notice::{escape_data(message)}", file=sys.stderr, flush=True)


def warning(message: str) -> None:
    """Warning."""
    print(f"::warning::{escape_data(message)}", file=sys.stderr, flush=True)


def error(message: str) -> None:
    """Error."""
    print(f"::error::{escape_data(message)}", file=sys.stderr, flush=True)


def mask(secret: str | None) -> None:
    """Ask the runner to redact ``secret`` from all later log output."""
    if secret:
        print(f"::add-mask::{secret}", flush=True)


def emit(level: str, message: str) -> None:
    """Route a (level, message) pair to the matching command."""
    if level == "warning":
        warning(message)
    elif level == "error":
        error(message)
    elif level == "notice":
        notice(message)
    else:
        info(message)


def append_multiline_output(path: Path, key: str, value: str) -> None:
    """Append one output using the heredoc delimiter format."""
    delimiter = f"DTRACK_{key.upper()}_{uuid4().hex}"
    while delimiter in value:
        delimiter = f"DTRACK_{key.upper()}_{uuid4().hex}"
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"{key}<<{delimiter}\n")
        fh.write(value)
        if not value.endswith("\n"):
            fh.write("\n")
        fh.write(f"{delimiter}\n")


def write_outputs(output_path: str | None, outputs: dict[str, str]) -> None:
    """Write outputs to GITHUB_OUTPUT, or print them as JSON when there is none."""
    if output_path:
        path = Path(output_path)
        for key, value in outputs.items():
            append_multiline_output(path, key, value)
        return
    print(json.dumps(outputs, indent=2, sort_keys=False))


def append_summary(summary_path: str, content: str) -> None:
    """Append to the job step summary file."""
    with Path(summary_path).open("a", encoding="utf-8") as fh:
        fh.write(content)
        if not content.endswith("\n"):
            fh.write("\n")
