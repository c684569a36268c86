"""Host dependency check.

Layer: Preflight
May only import from: .exceptions, stdlib
"""

from __future__ import annotations

import shutil
from typing import Iterable

from crossbox.exceptions import MissingHostDependency


def missing_host_tools(names: Iterable[str]) -> list[str]:
    return [name for name in dict.fromkeys(names) if shutil.which(name) is None]


def check_host_dependencies(names: Iterable[str], hint: str | None = None) -> None:
    """Raise MissingHostDependency naming every tool not found on PATH."""
    missing = missing_host_tools(names)
    if missing:
        raise MissingHostDependency(missing, hint=hint)
