"""On-disk workspace layout.

Layer: Preflight
May only import from: .log, stdlib
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from crossbox.log import log

SRC_DIR = "src"


@dataclass(frozen=True)
class BuildLayout:
    """Host-side directories for one target.

    ``base_dir`` is what gets mounted into the sandbox; ``src_dir`` and
    ``bin_dir`` are relative to it so the same names work on both sides
    of the mount.
    """

    base_dir: Path
    src_dir: str
    bin_dir: str

    @classmethod
    def for_target(cls, base_dir: str | Path, target: str) -> BuildLayout:
        return cls(base_dir=Path(base_dir), src_dir=SRC_DIR, bin_dir=f"{target}/bin")

    @property
    def src_path(self) -> Path:
        return self.base_dir / self.src_dir

    @property
    def bin_path(self) -> Path:
        return self.base_dir / self.bin_dir

    def log_path(self, log_name: str) -> Path:
        return self.base_dir / log_name

    def prepare(self) -> None:
        log("Preparing directories...")
        for path in (self.base_dir, self.src_path, self.bin_path):
            path.mkdir(parents=True, exist_ok=True)
