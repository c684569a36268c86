"""Podman sandbox backend.

Layer: Concrete Backend
May only import from: ..backend (ABC + dataclasses), .docker

Install: https://podman.io/docs/installation

Podman speaks the Docker CLI dialect, so this only overrides the two
places where rootless Podman behaves differently.
"""

from __future__ import annotations

from crossbox.backend import SandboxConfig
from crossbox.backends.docker import DockerBackend

_INSTALL_HINT = (
    "Podman CLI not found. Install it from https://podman.io/docs/installation."
)


class PodmanBackend(DockerBackend):
    """Runs the build inside a rootless Podman container."""

    name = "podman"
    binary = "podman"
    install_hint = _INSTALL_HINT

    def image_exists(self, name: str, tag: str) -> bool:
        # `podman image ls` reports local builds as localhost/<name>, so let
        # podman resolve the reference itself.
        proc = self._run([self.binary, "image", "exists", f"{name}:{tag}"])
        return proc.returncode == 0

    def _run_args(self, config: SandboxConfig) -> list[str]:
        # Without keep-id, --user maps into the rootless user namespace and
        # files on the mount end up owned by a subordinate uid.
        args = super()._run_args(config)
        return args[:2] + ["--userns", "keep-id"] + args[2:]
