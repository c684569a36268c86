"""Toolchain component table.

Layer: Core Abstraction
May only import from: stdlib

Configure flags are version-sensitive, so they live here as data rather
than being spread through the pipeline. Adding a component means adding
a StageSpec and slotting it into STAGES at the right point in the order.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class StageState(enum.Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    CONFIGURING = "configuring"
    BUILDING = "building"
    INSTALLING = "installing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (StageState.DONE, StageState.FAILED)


@dataclass(frozen=True)
class StageSpec:
    name: str
    default_version: str
    url_template: str
    source_dir_template: str
    configure_flags: tuple[str, ...]
    build_targets: tuple[str, ...]
    install_targets: tuple[str, ...]

    def url(self, version: str) -> str:
        return self.url_template.format(version=version)

    def source_dir(self, version: str) -> str:
        return self.source_dir_template.format(version=version)

    @property
    def log_name(self) -> str:
        return f"{self.name}-config.log"


BINUTILS = StageSpec(
    name="binutils",
    default_version="2.42",
    url_template="https://ftp.gnu.org/gnu/binutils/binutils-{version}.tar.xz",
    source_dir_template="binutils-{version}",
    configure_flags=("--with-sysroot", "--disable-nls", "--disable-werror"),
    build_targets=("all",),
    install_targets=("install",),
)

# First-pass GCC: no libc exists for the target yet, hence --without-headers
# and only the driver plus libgcc.
GCC = StageSpec(
    name="gcc",
    default_version="13.2.0",
    url_template="https://ftp.gnu.org/gnu/gcc/gcc-{version}/gcc-{version}.tar.xz",
    source_dir_template="gcc-{version}",
    configure_flags=(
        "--enable-languages=c,c++",
        "--without-headers",
        "--disable-nls",
        "--disable-werror",
    ),
    build_targets=("all-gcc", "all-target-libgcc"),
    install_targets=("install-gcc", "install-target-libgcc"),
)

GDB = StageSpec(
    name="gdb",
    default_version="14.1",
    url_template="https://ftp.gnu.org/gnu/gdb/gdb-{version}.tar.xz",
    source_dir_template="gdb-{version}",
    configure_flags=("--disable-nls", "--disable-werror"),
    build_targets=("all-gdb",),
    install_targets=("install-gdb",),
)

# Order matters: gcc's configure needs the cross binutils on PATH, gdb
# installs next to both.
STAGES: tuple[StageSpec, ...] = (BINUTILS, GCC, GDB)

DEFAULT_VERSIONS: dict[str, str] = {spec.name: spec.default_version for spec in STAGES}
