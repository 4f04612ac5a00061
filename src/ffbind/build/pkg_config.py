"""pkg-config probing.

A probe is a read-only pkg-config query: it reports where a library and
its headers live but emits nothing. Turning a probe into linkage directives
is the linker's job.
"""

import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..config.environment import ChildProcessEnvironment
from ..errors import FFBindError


class ProbeError(FFBindError):
    """Raised when pkg-config cannot locate a library."""

    def __init__(self, message: str, library: str):
        super().__init__(message)
        self.library = library


@dataclass(frozen=True)
class LinkItem:
    """One library named by pkg-config ``--libs`` output."""

    name: str
    framework: bool = False


@dataclass(frozen=True)
class PkgConfigLibrary:
    """Result of probing one pkg-config module."""

    name: str
    version: str
    link_paths: Tuple[Path, ...] = field(default_factory=tuple)
    libs: Tuple[LinkItem, ...] = field(default_factory=tuple)
    include_paths: Tuple[Path, ...] = field(default_factory=tuple)


def parse_libs(output: str) -> Tuple[Tuple[Path, ...], Tuple[LinkItem, ...]]:
    """Split ``pkg-config --libs`` output into search paths and libraries.

    Example:
        "-L/opt/lib -lavcodec -lm" gives search path /opt/lib and the
        libraries avcodec and m.
    """
    link_paths: List[Path] = []
    libs: List[LinkItem] = []
    tokens = shlex.split(output)

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.startswith("-L") and len(token) > 2:
            path = Path(token[2:])
            if path not in link_paths:
                link_paths.append(path)
        elif token.startswith("-l") and len(token) > 2:
            libs.append(LinkItem(token[2:]))
        elif token == "-framework" and i + 1 < len(tokens):
            libs.append(LinkItem(tokens[i + 1], framework=True))
            i += 1
        i += 1

    return tuple(link_paths), tuple(libs)


def parse_include_paths(output: str) -> Tuple[Path, ...]:
    """Extract ``-I`` directories from ``pkg-config --cflags`` output."""
    paths: List[Path] = []
    for token in shlex.split(output):
        if token.startswith("-I") and len(token) > 2:
            path = Path(token[2:])
            if path not in paths:
                paths.append(path)
    return tuple(paths)


class PkgConfigProber:
    """Queries pkg-config as a child process.

    Example usage:
        prober = PkgConfigProber(env.with_var("PKG_CONFIG_PATH", str(chain)), statik=True)
        library = prober.probe("libavcodec")
        print(library.version, library.include_paths)
    """

    def __init__(
        self,
        env: ChildProcessEnvironment,
        statik: bool = False,
        executable: Optional[str] = None
    ):
        """Initialize prober.

        Args:
            env: Environment holding the pkg-config search path
            statik: Ask for the static link line (``--static``)
            executable: pkg-config binary (default: $PKG_CONFIG or pkg-config)
        """
        self.env = env
        self.statik = statik
        self.executable = executable or env.get("PKG_CONFIG", "pkg-config")

    def _query(self, name: str, *args: str) -> str:
        cmd = [self.executable]
        if self.statik:
            cmd.append("--static")
        cmd.extend(args)
        cmd.append(name)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                env=self.env.as_dict(),
            )
        except OSError as e:
            raise ProbeError(f"Failed to run {self.executable}: {e}", library=name) from e

        if result.returncode != 0:
            detail = result.stderr.strip()
            message = f"{name} not found!"
            if detail:
                message += f"\n{detail}"
            raise ProbeError(message, library=name)

        return result.stdout.strip()

    def probe(self, name: str) -> PkgConfigLibrary:
        """Locate a library.

        Args:
            name: pkg-config module name (e.g. "libavcodec")

        Returns:
            PkgConfigLibrary with version, link line and include paths

        Raises:
            ProbeError: If the module is unknown or pkg-config fails
        """
        version = self._query(name, "--modversion")
        link_paths, libs = parse_libs(self._query(name, "--libs"))
        include_paths = parse_include_paths(self._query(name, "--cflags-only-I"))

        return PkgConfigLibrary(
            name=name,
            version=version,
            link_paths=link_paths,
            libs=libs,
            include_paths=include_paths,
        )
