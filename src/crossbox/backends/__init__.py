"""Container engine registry.

Layer: Backend Resolution
May only import from: .backend (ABC), concrete backend modules

Backends are resolved lazily, so only the engine actually selected is
imported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crossbox.backend import SandboxBackend

# Registry of engine name -> module path + class name.
# Add new engines here.
_BACKENDS: dict[str, tuple[str, str]] = {
    "docker": (".docker", "DockerBackend"),
    "podman": (".podman", "PodmanBackend"),
}


def available_backends() -> list[str]:
    return sorted(_BACKENDS)


def get_backend(name: str, debug: bool = False) -> SandboxBackend:
    """Resolve an engine by name with lazy import.

    Unknown names raise a ValueError that lists what is available.
    """
    if name not in _BACKENDS:
        available = ", ".join(available_backends())
        raise ValueError(
            f"Unknown container engine '{name}'. "
            f"Available engines: {available}. "
            f"To add a new engine, register it in crossbox/backends/__init__.py"
        )

    module_path, class_name = _BACKENDS[name]

    import importlib

    module = importlib.import_module(module_path, package=__name__)
    cls = getattr(module, class_name)
    return cls(debug=debug)
