"""Abstract container-engine backend interface.

Layer: Core Abstraction
May only import from: stdlib, typing

Every concrete engine (Docker, Podman, ...) MUST subclass
SandboxBackend and implement all abstract methods. Structural tests
in tests/structural/ enforce this at CI time.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from typing import Callable
from typing import Mapping
from typing import Sequence


@dataclass(frozen=True)
class SandboxConfig:
    """Everything needed to build the image and start the sandbox."""

    image_name: str
    image_tag: str
    dockerfile: str
    host_dir: str
    working_dir: str
    user: str  # "uid:gid"
    # Known before the engine answers, so an interrupted start can still
    # be stopped by name.
    container_name: str = ""

    @property
    def image(self) -> str:
        return f"{self.image_name}:{self.image_tag}"


@dataclass(frozen=True)
class SandboxHandle:
    """A running sandbox, as returned by :meth:`SandboxBackend.start`."""

    container_id: str
    engine: str

    @property
    def short_id(self) -> str:
        return self.container_id[:12]


@dataclass(frozen=True)
class ExecResult:
    """Result of executing a command in a sandbox."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class SandboxBackend(ABC):
    """Interface that every container engine must implement.

    Methods map one-to-one onto engine CLI calls: look up an image,
    build it, start a container, exec into it, stop it. Commands are
    always argument vectors; no backend is allowed to join them into a
    shell string.
    """

    name: str = ""
    binary: str = ""
    install_hint: str = ""

    @abstractmethod
    def image_exists(self, name: str, tag: str) -> bool:
        """Return True if ``name:tag`` is available locally."""

    @abstractmethod
    def build_image(
        self,
        config: SandboxConfig,
        on_output: Callable[[str], None] | None = None,
    ) -> ExecResult:
        """Build the image from ``config.dockerfile`` without any cache."""

    @abstractmethod
    def start(self, config: SandboxConfig) -> SandboxHandle:
        """Start a detached, long-lived sandbox and return its handle."""

    @abstractmethod
    def exec(
        self,
        handle: SandboxHandle,
        argv: Sequence[str],
        env: Mapping[str, str] | None = None,
        workdir: str | None = None,
        capture: bool = False,
        on_output: Callable[[str], None] | None = None,
    ) -> ExecResult:
        """Run ``argv`` inside the sandbox and wait for it to exit."""

    @abstractmethod
    def stop(self, handle: SandboxHandle) -> ExecResult:
        """Stop the sandbox and release its resources."""

    def required_tools(self) -> tuple[str, ...]:
        """Host executables this backend shells out to."""
        return (self.binary,)
