"""Docker sandbox backend.

Layer: Concrete Backend
May only import from: ..backend (ABC + dataclasses), ..exceptions, ..log

Install: https://docs.docker.com/engine/install/
The ``docker`` CLI must be on PATH and able to reach a daemon.

Every engine call is an argument vector handed to ``subprocess`` without
a shell, so command arguments reach the sandbox exactly as written.
"""

from __future__ import annotations

import collections
import re
import subprocess
from typing import Callable
from typing import Mapping
from typing import Sequence

from crossbox.backend import ExecResult
from crossbox.backend import SandboxBackend
from crossbox.backend import SandboxConfig
from crossbox.backend import SandboxHandle
from crossbox.exceptions import MissingHostDependency
from crossbox.exceptions import SandboxBuildFailure
from crossbox.exceptions import SandboxStartFailure
from crossbox.log import trace

_INSTALL_HINT = (
    "Docker CLI not found. Install it from "
    "https://docs.docker.com/engine/install/ and make sure the daemon is running."
)

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Lines of streamed output kept for error messages.
_TAIL_LINES = 40


def _validate_env_key(key: str) -> bool:
    return bool(_ENV_KEY_RE.match(key))


def _result(proc: subprocess.CompletedProcess[str]) -> ExecResult:
    return ExecResult(
        exit_code=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


class DockerBackend(SandboxBackend):
    """Runs the build inside a local Docker container."""

    name = "docker"
    binary = "docker"
    install_hint = _INSTALL_HINT

    def __init__(self, debug: bool = False) -> None:
        self._debug = debug

    # ------------------------------------------------------------------
    # Process helpers
    # ------------------------------------------------------------------

    def _run(
        self, cmd: list[str], input_text: str | None = None
    ) -> subprocess.CompletedProcess[str]:
        if self._debug:
            trace(cmd)
        try:
            return subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            raise MissingHostDependency([cmd[0]], hint=self.install_hint) from None

    def _stream(
        self,
        cmd: list[str],
        on_output: Callable[[str], None],
        input_text: str | None = None,
    ) -> ExecResult:
        """Run ``cmd`` forwarding merged stdout/stderr to ``on_output`` line by line.

        The last few lines are kept as ``stderr`` on the result so a
        failure can be reported without re-running anything.
        """
        if self._debug:
            trace(cmd)
        tail: collections.deque[str] = collections.deque(maxlen=_TAIL_LINES)
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if input_text is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except FileNotFoundError:
            raise MissingHostDependency([cmd[0]], hint=self.install_hint) from None
        with proc:
            try:
                if input_text is not None:
                    proc.stdin.write(input_text)
                    proc.stdin.close()
                for line in proc.stdout:
                    line = line.rstrip("\n")
                    tail.append(line)
                    on_output(line)
            except BaseException:
                # Leaving the block waits for the client; a silent command
                # would otherwise hold up teardown until it finished.
                proc.kill()
                raise
            exit_code = proc.wait()
        return ExecResult(exit_code=exit_code, stdout="", stderr="\n".join(tail))

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def image_exists(self, name: str, tag: str) -> bool:
        proc = self._run(
            [self.binary, "image", "ls", "--format", "{{.Repository}}:{{.Tag}}"]
        )
        if proc.returncode != 0:
            raise SandboxBuildFailure(
                f"could not list local images: {proc.stderr.strip()}"
            )
        wanted = f"{name}:{tag}"
        return any(line.strip() == wanted for line in proc.stdout.splitlines())

    def _build_args(self, config: SandboxConfig) -> list[str]:
        return [
            self.binary,
            "build",
            "--compress",
            "--force-rm",
            "--no-cache",
            "--tag",
            config.image,
            "-",
        ]

    def build_image(
        self,
        config: SandboxConfig,
        on_output: Callable[[str], None] | None = None,
    ) -> ExecResult:
        cmd = self._build_args(config)
        if on_output is not None:
            return self._stream(cmd, on_output, input_text=config.dockerfile)
        return _result(self._run(cmd, input_text=config.dockerfile))

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def _run_args(self, config: SandboxConfig) -> list[str]:
        name = ["--name", config.container_name] if config.container_name else []
        return [
            self.binary,
            "run",
            *name,
            "--cgroupns",
            "host",
            "--detach",
            "--init",
            "--quiet",
            "--rm",
            "--user",
            config.user,
            "--volume",
            f"{config.host_dir}:{config.working_dir}:Z",
            "--workdir",
            config.working_dir,
        ]

    def start(self, config: SandboxConfig) -> SandboxHandle:
        # The image entrypoint is `bash -c`, so the keep-alive command is
        # passed as a single argument.
        cmd = self._run_args(config) + [config.image, "sleep infinity"]
        proc = self._run(cmd)
        lines = proc.stdout.strip().splitlines()
        container_id = lines[-1].strip() if lines else ""
        if proc.returncode != 0 or not container_id:
            raise SandboxStartFailure(
                f"{self.binary} run exited with status {proc.returncode}: "
                f"{proc.stderr.strip() or 'no container id returned'}"
            )
        return SandboxHandle(container_id=container_id, engine=self.name)

    def _exec_args(
        self,
        handle: SandboxHandle,
        argv: Sequence[str],
        env: Mapping[str, str] | None,
        workdir: str | None,
    ) -> list[str]:
        cmd = [self.binary, "exec"]
        for key, value in (env or {}).items():
            if not _validate_env_key(key):
                raise ValueError(f"Invalid environment variable name: {key!r}")
            cmd.extend(["--env", f"{key}={value}"])
        if workdir:
            cmd.extend(["--workdir", workdir])
        cmd.append(handle.container_id)
        cmd.extend(argv)
        return cmd

    def exec(
        self,
        handle: SandboxHandle,
        argv: Sequence[str],
        env: Mapping[str, str] | None = None,
        workdir: str | None = None,
        capture: bool = False,
        on_output: Callable[[str], None] | None = None,
    ) -> ExecResult:
        if not argv:
            raise ValueError("exec needs at least a program name")
        cmd = self._exec_args(handle, argv, env, workdir)
        if on_output is not None and not capture:
            return self._stream(cmd, on_output)
        return _result(self._run(cmd))

    def stop(self, handle: SandboxHandle) -> ExecResult:
        return _result(self._run([self.binary, "stop", handle.container_id]))
