"""Sandbox lifecycle and the command bridge into it.

Layer: Execution
May only import from: .backend, .exceptions, .log, stdlib

One long-lived container serves every command of a run. The manager
owns it: ``running()`` starts it and stops it again on every way out of
the block, including Ctrl-C and SIGTERM.
"""

from __future__ import annotations

import contextlib
import shlex
import signal
import threading
from typing import Callable
from typing import Iterator
from typing import Mapping
from typing import Sequence

from crossbox.backend import ExecResult
from crossbox.backend import SandboxBackend
from crossbox.backend import SandboxConfig
from crossbox.backend import SandboxHandle
from crossbox.exceptions import CommandFailure
from crossbox.exceptions import CrossboxException
from crossbox.exceptions import SandboxBuildFailure
from crossbox.exceptions import SandboxInterrupted
from crossbox.log import log
from crossbox.log import output
from crossbox.log import warn


def _raise_interrupted(signum, frame) -> None:  # type: ignore[no-untyped-def]
    raise SandboxInterrupted(f"received {signal.Signals(signum).name}")


@contextlib.contextmanager
def _terminate_as_exception() -> Iterator[None]:
    """Turn SIGTERM into an exception for the duration of the block.

    Python's default SIGTERM action kills the interpreter without running
    ``finally`` blocks; SIGINT already raises KeyboardInterrupt.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGTERM, _raise_interrupted)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


@contextlib.contextmanager
def _sigterm_ignored() -> Iterator[None]:
    """Ignore SIGTERM while cleanup runs so a repeated signal cannot cut it short."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGTERM, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


class SandboxManager:
    """Builds the image, starts the sandbox and guarantees it is stopped."""

    def __init__(self, backend: SandboxBackend, config: SandboxConfig) -> None:
        self._backend = backend
        self._config = config
        self._handle: SandboxHandle | None = None

    @property
    def config(self) -> SandboxConfig:
        return self._config

    @property
    def handle(self) -> SandboxHandle | None:
        return self._handle

    def image_exists(self) -> bool:
        log("Checking if build container exists...")
        return self._backend.image_exists(self._config.image_name, self._config.image_tag)

    def ensure_image(self, force: bool = False) -> bool:
        """Build the image if it is missing or ``force`` is set.

        Returns True when a build was performed.
        """
        if not force and self.image_exists():
            log(f"Reusing existing image {self._config.image}")
            return False

        log("Creating container to use to build cross compiler...")
        result = self._backend.build_image(self._config, on_output=output)
        if not result.ok:
            raise SandboxBuildFailure(
                f"{self._backend.binary} build exited with status {result.exit_code}"
                + (f"\n{result.stderr.strip()}" if result.stderr.strip() else "")
            )
        return True

    def start(self) -> SandboxHandle:
        if self._handle is not None:
            raise RuntimeError(
                f"Sandbox {self._handle.short_id} is already running for this run."
            )
        log("Starting build container in the background to schedule tasks within...")
        try:
            self._handle = self._backend.start(self._config)
        except (KeyboardInterrupt, SandboxInterrupted):
            self._stop_by_name()
            raise
        log(f"Created container {self._handle.short_id}")
        return self._handle

    def stop(self) -> None:
        """Stop the sandbox if one is running. Safe to call more than once."""
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        log("Stopping the build container.")
        try:
            result = self._backend.stop(handle)
        except CrossboxException as e:
            warn(f"could not stop container {handle.short_id}: {e.format_message()}")
            return
        if not result.ok:
            warn(
                f"{self._backend.binary} stop {handle.short_id} exited with status "
                f"{result.exit_code}: {result.stderr.strip()}"
            )

    def _stop_by_name(self) -> None:
        # The engine may have created the container before its client was
        # killed; only the name we gave it is known.
        if not self._config.container_name:
            return
        self._handle = SandboxHandle(
            container_id=self._config.container_name, engine=self._backend.name
        )
        with _sigterm_ignored():
            self.stop()

    @contextlib.contextmanager
    def running(self) -> Iterator[SandboxHandle]:
        with _terminate_as_exception():
            handle = self.start()
            try:
                yield handle
            finally:
                with _sigterm_ignored():
                    self.stop()


class CommandBridge:
    """Runs argument vectors inside a started sandbox, failing fast."""

    def __init__(
        self,
        backend: SandboxBackend,
        handle: SandboxHandle,
        on_output: Callable[[str], None] | None = output,
    ) -> None:
        if handle is None:
            raise ValueError("CommandBridge needs a running sandbox")
        self._backend = backend
        self._handle = handle
        self._on_output = on_output

    @property
    def handle(self) -> SandboxHandle:
        return self._handle

    def run(
        self,
        argv: Sequence[str],
        env: Mapping[str, str] | None = None,
        workdir: str | None = None,
        capture: bool = False,
        check: bool = True,
    ) -> ExecResult:
        """Execute ``argv`` in the sandbox.

        With ``check`` (the default) a non-zero exit raises CommandFailure.
        ``capture`` returns stdout on the result instead of streaming it.
        """
        log(f"Running {shlex.join(argv)}")
        result = self._backend.exec(
            self._handle,
            argv,
            env=env,
            workdir=workdir,
            capture=capture,
            on_output=None if capture else self._on_output,
        )
        if check and not result.ok:
            raise CommandFailure(list(argv), result.exit_code, result.stderr)
        return result
