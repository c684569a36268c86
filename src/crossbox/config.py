"""Run configuration: defaults, the embedded image and validated options.

Layer: Configuration
May only import from: .backend, .stages, stdlib

Nothing here is mutated after startup. ``BuildOptions`` is validated once
when the CLI constructs it and is then passed to whoever needs it.
"""

from __future__ import annotations

import os
import pwd
import re
import uuid
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from crossbox.backend import SandboxConfig
from crossbox.stages import DEFAULT_VERSIONS

DEFAULT_ARCH = "i686-elf"
DEFAULT_ENGINE = "docker"
DEFAULT_JOBS = 16
DEFAULT_OUTPUT_DIR = "target"

IMAGE_NAME = "crossbox/crosscompiler"
IMAGE_TAG = "latest"
WORKING_DIR = "/workspace/"

DOCKERFILE = """\
FROM public.ecr.aws/debian/debian:trixie-slim

RUN apt-get update -yq \\
    && apt-get install -qy --no-install-recommends \\
        bash \\
        bison \\
        build-essential \\
        ca-certificates \\
        curl \\
        flex \\
        gcc \\
        libgmp3-dev \\
        libmpc-dev \\
        libmpfr-dev \\
        tar \\
        texinfo \\
        xz-utils \\
    && apt-get clean autoclean \\
    && apt-get autoremove --yes \\
    && rm -rf /var/lib/apt \\
    && rm -rf /var/lib/dpkg \\
    && rm -rf /var/lib/cache \\
    && rm -rf /var/lib/log

ENTRYPOINT ["/bin/bash", "-c"]
CMD        ["uname -a && make --version && gcc --version"]
"""

# cpu-vendor-os with an optional fourth component, e.g. x86_64-pc-linux-gnu.
_TRIPLE_RE = re.compile(r"^[A-Za-z0-9_.]+(-[A-Za-z0-9_.]+){1,3}$")
_VERSION_RE = re.compile(r"^[0-9][0-9A-Za-z.+_-]*$")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes", "on")


def debug_enabled() -> bool:
    """CROSSBOX_DEBUG wins; plain DEBUG is honoured for shell-script muscle memory."""
    if os.environ.get("CROSSBOX_DEBUG") is not None:
        return _env_flag("CROSSBOX_DEBUG")
    debug = os.environ.get("DEBUG", "0").strip()
    return debug not in ("", "0")


def resolve_user() -> str:
    """Return ``uid:gid`` for the invoking user.

    ``$USER`` is looked up in the password database so that ``sudo -E``
    style invocations still produce host-writable files; without it the
    current process ids are used.
    """
    user_name = os.environ.get("USER")
    if user_name:
        try:
            entry = pwd.getpwnam(user_name)
        except KeyError:
            pass
        else:
            return f"{entry.pw_uid}:{entry.pw_gid}"
    return f"{os.getuid()}:{os.getgid()}"


@dataclass(frozen=True)
class BuildOptions:
    """Validated command-line options for a single run."""

    arch: str = DEFAULT_ARCH
    versions: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_VERSIONS))
    force_rebuild_container: bool = False
    engine: str = DEFAULT_ENGINE
    jobs: int = DEFAULT_JOBS
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)

    def __post_init__(self) -> None:
        # Read-only copy of whatever mapping the caller passed in.
        object.__setattr__(self, "versions", MappingProxyType(dict(self.versions)))
        if not _TRIPLE_RE.match(self.arch):
            raise ValueError(
                f"Invalid target triple '{self.arch}'. "
                "Expected something like i686-elf or aarch64-none-elf."
            )
        for stage, version in self.versions.items():
            if stage not in DEFAULT_VERSIONS:
                raise ValueError(f"Unknown toolchain component '{stage}'.")
            if not _VERSION_RE.match(version):
                raise ValueError(f"Invalid {stage} version '{version}'.")
        if self.jobs < 1:
            raise ValueError("--jobs must be at least 1.")

    def version(self, stage: str) -> str:
        return self.versions.get(stage, DEFAULT_VERSIONS[stage])

    def sandbox_config(self, host_dir: str | Path) -> SandboxConfig:
        return SandboxConfig(
            image_name=IMAGE_NAME,
            image_tag=IMAGE_TAG,
            dockerfile=DOCKERFILE,
            host_dir=str(Path(host_dir).resolve()),
            working_dir=WORKING_DIR,
            user=resolve_user(),
            container_name=f"crossbox-{uuid.uuid4().hex[:12]}",
        )
