"""
Build system components for ffbind.

This module provides the build implementation including:
- Child process execution of configure/make/meson/cmake/ninja
- Cross compilation settings
- Rockchip hardware acceleration libraries
- FFmpeg configure/build/install
- pkg-config probing and linkage directives
- Build orchestration
"""

from .artifacts import NativeBuildArtifact, PkgConfigPathChain
from .cross_file import CrossCompileSettings, CrossFileGenerator
from .directives import Directive, DirectiveSink
from .ffmpeg_builder import FFmpegBuilder, FFmpegBuildResult
from .hwaccel_builder import HardwareAccelerationBuilder, HardwareAccelerationResult
from .linker import DirectoryBasedLinker, LibraryLinker, ProbeBasedLinker, create_linker
from .orchestrator import BuildOrchestrator, BuildResult
from .pkg_config import PkgConfigLibrary, PkgConfigProber, ProbeError
from .process_runner import ProcessRunner, SubBuildError

__all__ = [
    "NativeBuildArtifact",
    "PkgConfigPathChain",
    "CrossCompileSettings",
    "CrossFileGenerator",
    "Directive",
    "DirectiveSink",
    "FFmpegBuilder",
    "FFmpegBuildResult",
    "HardwareAccelerationBuilder",
    "HardwareAccelerationResult",
    "DirectoryBasedLinker",
    "LibraryLinker",
    "ProbeBasedLinker",
    "create_linker",
    "BuildOrchestrator",
    "BuildResult",
    "PkgConfigLibrary",
    "PkgConfigProber",
    "ProbeError",
    "ProcessRunner",
    "SubBuildError",
]
