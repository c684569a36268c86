"""Progress output on stderr.

Layer: Core Abstraction
May only import from: stdlib, click

stdout is left alone so the tool can be piped; everything the
orchestrator says goes to stderr through click.
"""

from __future__ import annotations

import shlex
import time
from typing import Sequence

import click


def _timestamp() -> str:
    return time.strftime("%a %b %d %H:%M:%S %Z %Y")


def log(message: str) -> None:
    click.secho(f"<{_timestamp()}>", fg="yellow", bold=True, nl=False, err=True)
    click.secho(f" {message}", fg="magenta", err=True)


def warn(message: str) -> None:
    click.secho(f"WARNING: {message}", fg="yellow", err=True)


def output(line: str) -> None:
    """Echo one line of sandboxed command output."""
    click.echo(line, err=True)


def trace(argv: Sequence[str]) -> None:
    click.secho(f"+ {shlex.join(argv)}", dim=True, err=True)
