"""Installed native build outputs and pkg-config search chains."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple


@dataclass(frozen=True)
class NativeBuildArtifact:
    """Install prefix produced by one native sub-build.

    Layout:
        <prefix>/
        ├── include/
        └── lib/
            └── pkgconfig/
    """

    name: str
    prefix: Path

    @property
    def include_dir(self) -> Path:
        return self.prefix / "include"

    @property
    def lib_dir(self) -> Path:
        return self.prefix / "lib"

    @property
    def pkg_config_dir(self) -> Path:
        return self.lib_dir / "pkgconfig"


@dataclass(frozen=True)
class PkgConfigPathChain:
    """Ordered pkg-config search directories.

    Entries are kept in the order the builders ran, hardware acceleration
    libraries first and the primary library last. Appending returns a new
    chain.
    """

    entries: Tuple[Path, ...] = field(default_factory=tuple)

    def append(self, path: Path) -> "PkgConfigPathChain":
        return PkgConfigPathChain(self.entries + (Path(path),))

    def extend(self, other: "PkgConfigPathChain") -> "PkgConfigPathChain":
        return PkgConfigPathChain(self.entries + other.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __str__(self) -> str:
        return ":".join(str(entry) for entry in self.entries)
