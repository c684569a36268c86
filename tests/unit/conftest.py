"""Shared fixtures: an in-memory container engine that records every call."""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from typing import Mapping
from typing import Sequence

import pytest

from crossbox.backend import ExecResult
from crossbox.backend import SandboxBackend
from crossbox.backend import SandboxConfig
from crossbox.backend import SandboxHandle


class FakeBackend(SandboxBackend):
    """Pretends to be an engine.

    ``fail`` maps an argv to an exit code (or None for success). ``mv``
    commands that target the working directory write the destination file
    under the mounted host directory, the way a real bind mount would.
    """

    name = "fake"
    binary = "fake-engine"
    install_hint = "install the fake engine"

    def __init__(
        self,
        images: Sequence[str] = (),
        fail: Callable[[list[str]], int | None] | None = None,
        build_exit: int = 0,
        start_error: Exception | None = None,
        working_dir: str = "/workspace/",
    ) -> None:
        self.images = set(images)
        self.fail = fail
        self.build_exit = build_exit
        self.start_error = start_error
        self.working_dir = working_dir
        self.host_dir: Path | None = None
        self.calls: list[tuple[str, str]] = []
        self.commands: list[list[str]] = []
        self.envs: list[dict[str, str]] = []
        self.workdirs: list[str | None] = []
        self.on_exec: Callable[[list[str]], None] | None = None

    def image_exists(self, name: str, tag: str) -> bool:
        self.calls.append(("image_exists", f"{name}:{tag}"))
        return f"{name}:{tag}" in self.images

    def build_image(
        self,
        config: SandboxConfig,
        on_output: Callable[[str], None] | None = None,
    ) -> ExecResult:
        self.calls.append(("build_image", config.image))
        if self.build_exit:
            return ExecResult(exit_code=self.build_exit, stdout="", stderr="apt-get failed")
        self.images.add(config.image)
        return ExecResult(exit_code=0, stdout="", stderr="")

    def start(self, config: SandboxConfig) -> SandboxHandle:
        self.calls.append(("start", config.host_dir))
        if self.start_error is not None:
            raise self.start_error
        self.host_dir = Path(config.host_dir)
        return SandboxHandle(container_id="c0ffee" * 8, engine=self.name)

    def exec(
        self,
        handle: SandboxHandle,
        argv: Sequence[str],
        env: Mapping[str, str] | None = None,
        workdir: str | None = None,
        capture: bool = False,
        on_output: Callable[[str], None] | None = None,
    ) -> ExecResult:
        argv = list(argv)
        self.calls.append(("exec", argv[0]))
        self.commands.append(argv)
        self.envs.append(dict(env or {}))
        self.workdirs.append(workdir)
        if self.on_exec is not None:
            self.on_exec(argv)

        code = self.fail(argv) if self.fail else None
        if code:
            return ExecResult(exit_code=code, stdout="", stderr=f"{argv[0]} failed")

        if argv[0] == "mktemp":
            path = "/tmp/tmp.build" if "-d" in argv else "/tmp/tmp.archive"
            return ExecResult(exit_code=0, stdout=f"{path}\n", stderr="")
        if argv[0] == "mv" and self.host_dir is not None:
            dest = argv[-1]
            if dest.startswith(self.working_dir):
                target = self.host_dir / dest[len(self.working_dir):]
                target.write_text("configure log\n")
        return ExecResult(exit_code=0, stdout="", stderr="")

    def stop(self, handle: SandboxHandle) -> ExecResult:
        self.calls.append(("stop", handle.container_id))
        return ExecResult(exit_code=0, stdout="", stderr="")

    def stop_count(self) -> int:
        return sum(1 for method, _ in self.calls if method == "stop")


@pytest.fixture()
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def make_backend() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture()
def sandbox_config(tmp_path: Path) -> SandboxConfig:
    return SandboxConfig(
        image_name="crossbox/crosscompiler",
        image_tag="latest",
        dockerfile="FROM scratch\n",
        host_dir=str(tmp_path),
        working_dir="/workspace/",
        user="1000:1000",
        container_name="crossbox-test",
    )
