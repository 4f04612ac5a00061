"""
Build orchestration for ffbind.

This module coordinates the entire build, from the validated configuration
to the binding artifact. It integrates all build components:
- Cross compilation settings (meson cross file, configure flags)
- Optional Rockchip hardware acceleration libraries
- FFmpeg configure/build/install
- Library probing and linkage directives
- Binding generation (or a prebuilt binding copy)
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..bindings.generator import BindingGenerator, use_prebuilt_binding
from ..config.build_config import BuildConfiguration
from ..packages.platform_utils import PlatformDetector
from .artifacts import PkgConfigPathChain
from .cross_file import CrossFileGenerator
from .directives import Directive, DirectiveSink
from .ffmpeg_builder import FFmpegBuilder
from .hwaccel_builder import HardwareAccelerationBuilder, remove_dynamic_artifacts
from .linker import create_linker
from .process_runner import ProcessRunner


MANIFEST_NAME = "ffbind-link.json"


@dataclass
class BuildResult:
    """Result of a complete build operation."""

    include_dir: Path
    pkg_config_chain: PkgConfigPathChain
    directives: List[Directive]
    binding_path: Optional[Path]
    manifest_path: Optional[Path]
    build_time: float
    include_paths: Tuple[Path, ...] = field(default_factory=tuple)


class BuildOrchestrator:
    """
    Orchestrates the complete build.

    This class coordinates all phases of the build:
    1. Generate cross compilation settings
    2. Build the hardware acceleration libraries (when enabled)
    3. Configure, build and install FFmpeg
    4. Probe and link the FFmpeg libraries
    5. Generate or copy the binding, then write the link manifest

    Example usage:
        orchestrator = BuildOrchestrator(verbose=True)
        result = orchestrator.build(config, DirectiveSink())
        print(f"Binding: {result.binding_path}")
    """

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        binding_generator: Optional[BindingGenerator] = None,
        windows: Optional[bool] = None,
        verbose: bool = False
    ):
        """
        Initialize build orchestrator.

        Args:
            runner: Process runner (default: a new ProcessRunner)
            binding_generator: Binding generator (default: built from the config)
            windows: Override host detection
            verbose: Enable verbose output
        """
        self.runner = runner or ProcessRunner(verbose=verbose)
        self.binding_generator = binding_generator
        self.windows = PlatformDetector.is_windows() if windows is None else windows
        self.verbose = verbose

    def _progress(self, message: str) -> None:
        if self.verbose:
            print(message)

    def build(self, config: BuildConfiguration, sink: Optional[DirectiveSink] = None) -> BuildResult:
        """
        Execute the complete build.

        Args:
            config: Validated build configuration
            sink: Directive sink (default: prints to stdout)

        Returns:
            BuildResult with the include directory, directives and binding path

        Raises:
            FFBindError: If any phase fails; nothing after the failing phase runs
        """
        start_time = time.time()
        sink = sink or DirectiveSink()
        dry_run = self.runner.dry_run

        # Phase 1: Cross compilation settings
        self._progress("[1/5] Preparing cross compilation settings...")
        cross = CrossFileGenerator(config).generate()
        if cross.enabled:
            self._progress(f"      Cross file: {cross.meson_cross_file}")

        # Phase 2: Hardware acceleration
        hwaccel = None
        chain = PkgConfigPathChain()
        if config.rockchip_mpp:
            self._progress("[2/5] Building Rockchip hardware acceleration libraries...")
            hwaccel = HardwareAccelerationBuilder(config, self.runner).build(cross.meson_cross_file)
            chain = hwaccel.pkg_config_chain
        else:
            self._progress("[2/5] Hardware acceleration disabled, skipping")

        # Phase 3: FFmpeg
        self._progress("[3/5] Building FFmpeg...")
        ffmpeg = FFmpegBuilder(config, self.runner).build(cross, chain)
        if hwaccel is not None:
            remove_dynamic_artifacts(hwaccel.cleanup_files, dry_run=dry_run)
        self._progress(f"      Installed to {ffmpeg.artifact.prefix}")

        # Phase 4: Linking
        self._progress("[4/5] Linking FFmpeg libraries...")
        manifest = config.out_dir / MANIFEST_NAME
        if not dry_run and manifest.exists():
            # Manifest of an earlier run
            manifest.unlink()
        linker = create_linker(
            config, ffmpeg.pkg_config_chain, ffmpeg.artifact.lib_dir, windows=self.windows
        )
        outcome = linker.link(sink)

        # Phase 5: Binding
        self._progress("[5/5] Generating binding...")
        binding_path = None if dry_run else self._binding(config, ffmpeg.include_dir)
        if binding_path is not None:
            self._progress(f"      Binding: {binding_path}")

        # Only a completed build has a manifest
        manifest_path = None
        if not dry_run:
            manifest_path = sink.write_manifest(
                manifest,
                include_paths=outcome.include_paths or (ffmpeg.include_dir,),
                windows=self.windows,
            )

        build_time = time.time() - start_time
        logging.info(f"Build finished in {build_time:.2f}s")

        return BuildResult(
            include_dir=ffmpeg.include_dir,
            pkg_config_chain=ffmpeg.pkg_config_chain,
            directives=list(sink.directives),
            binding_path=binding_path,
            manifest_path=manifest_path,
            build_time=build_time,
            include_paths=outcome.include_paths,
        )

    def _binding(self, config: BuildConfiguration, install_include_dir: Path) -> Path:
        include_dir = install_include_dir
        if self.windows:
            # Prebuilt FFmpeg on Windows: prefer the user supplied binding
            # or headers over the vendored build's
            if config.ffmpeg_binding_path is not None:
                return use_prebuilt_binding(
                    config.ffmpeg_binding_path, config.out_dir, config.ffmpeg_include_dir
                )
            if config.ffmpeg_include_dir is not None:
                include_dir = config.ffmpeg_include_dir

        generator = self.binding_generator or BindingGenerator(config.environment)
        return generator.generate(include_dir, config.out_dir)
