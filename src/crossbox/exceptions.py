"""Error taxonomy for crossbox.

Layer: Core Abstraction
May only import from: stdlib, click

Every failure is fatal. Each exception carries the process exit code it
maps to, and click prints its message to stderr before exiting.
"""

from __future__ import annotations

import click

EXIT_USAGE = 1
EXIT_MISSING_DEPENDENCY = 2
EXIT_SANDBOX_BUILD = 3
EXIT_SANDBOX_START = 4
EXIT_INTERRUPTED = 130


class CrossboxException(click.ClickException):
    headline = "Cross-compiler build error"
    exit_code = 1

    def format_message(self) -> str:
        return f"{self.headline}: {self.message}"


class InvalidArgument(click.UsageError):
    """Well-formed flags with values that make no sense, e.g. a bad triple."""

    exit_code = EXIT_USAGE


class MissingHostDependency(CrossboxException):
    headline = "Missing host dependency"
    exit_code = EXIT_MISSING_DEPENDENCY

    def __init__(self, missing: list[str], hint: str | None = None) -> None:
        self.missing = list(missing)
        names = ", ".join(self.missing)
        message = f"please install {names} before continuing"
        if hint:
            message += f"\n{hint}"
        super().__init__(message)


class SandboxBuildFailure(CrossboxException):
    headline = "Sandbox image build failed"
    exit_code = EXIT_SANDBOX_BUILD


class SandboxStartFailure(CrossboxException):
    headline = "Sandbox failed to start"
    exit_code = EXIT_SANDBOX_START


class CommandFailure(CrossboxException):
    """A command inside the sandbox exited non-zero."""

    headline = "Sandboxed command failed"

    def __init__(self, argv: list[str], exit_code: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.stderr = stderr
        message = f"{' '.join(self.argv)!r} exited with status {exit_code}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)
        # Instance attribute so the run exits with the command's own status.
        self.exit_code = exit_code if exit_code > 0 else 1


class SandboxInterrupted(CrossboxException):
    """Raised from the SIGTERM handler so cleanup runs on the way out."""

    headline = "Interrupted"
    exit_code = EXIT_INTERRUPTED
