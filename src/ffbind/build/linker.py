"""
Library linkage for the FFmpeg component libraries.

Two strategies share the LibraryLinker interface:
- ProbeBasedLinker: pkg-config probing (everywhere except Windows)
- DirectoryBasedLinker: an explicit library directory (Windows, where
  pkg-config is not assumed to exist)

The strategy is chosen once by create_linker() from the host platform.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..config.build_config import BuildConfiguration, LinkMode
from ..config.environment import ChildProcessEnvironment
from ..packages.platform_utils import PlatformDetector
from .artifacts import PkgConfigPathChain
from .directives import DirectiveSink
from .pkg_config import PkgConfigLibrary, PkgConfigProber


# All the libraries FFmpeg installs, in link order
LIBS: Tuple[str, ...] = (
    "libavcodec",
    "libavdevice",
    "libavfilter",
    "libavformat",
    "libavutil",
    "libswresample",
    "libswscale",
)


def link_name(library: str) -> str:
    """Strip the ``lib`` prefix: ``libavcodec`` -> ``avcodec``."""
    return library[3:] if library.startswith("lib") else library


@dataclass(frozen=True)
class LinkOutcome:
    """What linking discovered besides the emitted directives."""

    include_paths: Tuple[Path, ...] = field(default_factory=tuple)
    libraries: Tuple[PkgConfigLibrary, ...] = field(default_factory=tuple)


class LibraryLinker(ABC):
    """Emits linkage directives for a fixed set of component libraries."""

    def __init__(self, libraries: Sequence[str] = LIBS):
        self.libraries = tuple(libraries)

    @abstractmethod
    def link(self, sink: DirectiveSink) -> LinkOutcome:
        """Emit linkage directives into ``sink``.

        Raises:
            ProbeError: If a library cannot be located
        """
        pass


class ProbeBasedLinker(LibraryLinker):
    """
    Links through pkg-config in two passes.

    The first pass probes every library without emitting anything, so a
    missing library aborts the build before any linkage directive exists.
    Only then does the second pass probe again and emit directives.
    """

    def __init__(self, prober: PkgConfigProber, libraries: Sequence[str] = LIBS):
        super().__init__(libraries)
        self.prober = prober

    def dry_run(self) -> List[PkgConfigLibrary]:
        """Probe every library with no side effects."""
        return [self.prober.probe(library) for library in self.libraries]

    def link(self, sink: DirectiveSink) -> LinkOutcome:
        self.dry_run()

        include_paths: List[Path] = []
        probed: List[PkgConfigLibrary] = []
        searched: List[Path] = []
        for library in self.libraries:
            result = self.prober.probe(library)
            probed.append(result)
            self._emit(result, sink, searched)
            for path in result.include_paths:
                if path not in include_paths:
                    include_paths.append(path)

        return LinkOutcome(include_paths=tuple(include_paths), libraries=tuple(probed))

    def _emit(
        self,
        library: PkgConfigLibrary,
        sink: DirectiveSink,
        searched: List[Path]
    ) -> None:
        for path in library.link_paths:
            if path not in searched:
                searched.append(path)
                sink.link_search(path)

        for item in library.libs:
            if item.framework:
                sink.link_lib(item.name, "framework")
            elif self.prober.statik and self._has_static_archive(item.name, library.link_paths):
                sink.link_lib(item.name, str(LinkMode.STATIC))
            else:
                sink.link_lib(item.name, str(LinkMode.DYNAMIC))

    @staticmethod
    def _has_static_archive(name: str, link_paths: Sequence[Path]) -> bool:
        # System libraries (libm, libpthread, ...) have no archive in the
        # -L dirs and stay dynamic even in static mode
        return any((path / f"lib{name}.a").exists() for path in link_paths)


class DirectoryBasedLinker(LibraryLinker):
    """Links every library from one directory with a fixed link mode."""

    def __init__(
        self,
        libs_dir: Path,
        mode: LinkMode = LinkMode.STATIC,
        libraries: Sequence[str] = LIBS
    ):
        super().__init__(libraries)
        self.libs_dir = libs_dir
        self.mode = mode

    def link(self, sink: DirectiveSink) -> LinkOutcome:
        sink.link_search(self.libs_dir)
        for library in self.libraries:
            sink.link_lib(link_name(library), str(self.mode))
        return LinkOutcome()


def create_linker(
    config: BuildConfiguration,
    chain: PkgConfigPathChain,
    install_lib_dir: Path,
    windows: Optional[bool] = None
) -> LibraryLinker:
    """
    Select the linker strategy for the host platform.

    Args:
        config: Build configuration
        chain: Final pkg-config search chain
        install_lib_dir: FFmpeg install lib dir, used on Windows when
            FFMPEG_LIBS_DIR is not set
        windows: Override host detection (tests)

    Returns:
        DirectoryBasedLinker on Windows, ProbeBasedLinker elsewhere
    """
    if windows is None:
        windows = PlatformDetector.is_windows()

    if windows:
        libs_dir = config.ffmpeg_libs_dir or install_lib_dir
        return DirectoryBasedLinker(libs_dir, config.link_mode or LinkMode.STATIC)

    env: ChildProcessEnvironment = config.environment.with_var(config.pkg_config_var, str(chain))
    statik = config.link_mode.is_static if config.link_mode is not None else False
    return ProbeBasedLinker(PkgConfigProber(env, statik=statik))
