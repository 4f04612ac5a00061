"""Build directive sink.

Directives are the orchestrator's side effects on the surrounding build:
re-run triggers for configuration inputs, library search paths and
libraries to link. Each directive is printed as ``ffbind:<key>=<value>``
and recorded so callers can inspect what was emitted or turn the linkage
directives into setuptools ``Extension`` arguments.
"""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO


LINK_SEARCH = "link-search"
LINK_LIB = "link-lib"
RERUN_IF_ENV_CHANGED = "rerun-if-env-changed"


@dataclass(frozen=True)
class Directive:
    """A single emitted directive."""

    key: str
    value: str

    @property
    def is_linkage(self) -> bool:
        return self.key in (LINK_SEARCH, LINK_LIB)

    def render(self, prefix: str = "ffbind") -> str:
        return f"{prefix}:{self.key}={self.value}"


class DirectiveSink:
    """Collects and prints build directives.

    Example usage:
        sink = DirectiveSink()
        sink.rerun_if_env_changed("OUT_DIR")
        sink.link_search(Path("/opt/ffmpeg/lib"))
        sink.link_lib("avcodec", "static")
    """

    PREFIX = "ffbind"

    def __init__(self, stream: Optional[TextIO] = None, echo: bool = True):
        """Initialize directive sink.

        Args:
            stream: Where rendered directives are written (default: stdout)
            echo: Whether to write directives at all (they are always recorded)
        """
        self.stream = stream
        self.echo = echo
        self.directives: List[Directive] = []

    def emit(self, key: str, value: str) -> Directive:
        directive = Directive(key, value)
        self.directives.append(directive)
        if self.echo:
            stream = self.stream if self.stream is not None else sys.stdout
            print(directive.render(self.PREFIX), file=stream)
        return directive

    def rerun_if_env_changed(self, name: str) -> Directive:
        return self.emit(RERUN_IF_ENV_CHANGED, name)

    def link_search(self, path: Path, kind: str = "native") -> Directive:
        return self.emit(LINK_SEARCH, f"{kind}={path}")

    def link_lib(self, name: str, kind: Optional[str] = None) -> Directive:
        value = f"{kind}={name}" if kind else name
        return self.emit(LINK_LIB, value)

    @property
    def linkage_directives(self) -> List[Directive]:
        """Only the link-search and link-lib directives, in emission order."""
        return [d for d in self.directives if d.is_linkage]

    @property
    def tracked_env_vars(self) -> List[str]:
        return [d.value for d in self.directives if d.key == RERUN_IF_ENV_CHANGED]

    def extension_kwargs(self, windows: bool = False) -> Dict[str, List[str]]:
        """Translate linkage directives into setuptools Extension arguments.

        Static libraries are wrapped in ``-Wl,-Bstatic``/``-Wl,-Bdynamic`` on
        GNU style linkers; MSVC picks static or import libraries by name so
        everything goes to ``libraries`` there.

        Returns:
            Dict with 'library_dirs', 'libraries' and 'extra_link_args' keys
        """
        library_dirs: List[str] = []
        libraries: List[str] = []
        extra_link_args: List[str] = []

        for directive in self.linkage_directives:
            if directive.key == LINK_SEARCH:
                _, _, path = directive.value.partition("=")
                if path not in library_dirs:
                    library_dirs.append(path)
                continue

            kind, sep, name = directive.value.partition("=")
            if not sep:
                kind, name = "dylib", kind
            if kind == "static" and not windows:
                extra_link_args.extend(["-Wl,-Bstatic", f"-l{name}", "-Wl,-Bdynamic"])
            else:
                libraries.append(name)

        return {
            "library_dirs": library_dirs,
            "libraries": libraries,
            "extra_link_args": extra_link_args,
        }

    def write_manifest(
        self,
        path: Path,
        include_paths: Sequence[Path] = (),
        windows: bool = False
    ) -> Path:
        """Write linkage directives and include paths as JSON.

        Args:
            path: Output file
            include_paths: Include directories discovered while probing
            windows: Render the extension arguments for an MSVC linker

        Returns:
            Path to the written manifest
        """
        manifest = {
            "directives": [d.render(self.PREFIX) for d in self.linkage_directives],
            "include_paths": [str(p) for p in include_paths],
            "tracked_env_vars": self.tracked_env_vars,
            "extension": self.extension_kwargs(windows=windows),
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)
            f.write("\n")
        return path
