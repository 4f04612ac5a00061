"""
FFmpeg build from vendored sources.

FFmpeg is configured with everything disabled except the minimal feature
set plus GPL/version3 licensing; consumers widen it through
FFMPEG_CONFIGURATION. FFmpeg writes object files into its source tree, so
the tree is cleaned before every build.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..config.build_config import BuildConfiguration
from ..errors import BuildFilesystemError
from .artifacts import NativeBuildArtifact, PkgConfigPathChain
from .cross_file import CrossCompileSettings
from .process_runner import ProcessRunner


@dataclass(frozen=True)
class FFmpegBuildResult:
    """Installed FFmpeg and the final pkg-config search chain."""

    artifact: NativeBuildArtifact
    pkg_config_chain: PkgConfigPathChain

    @property
    def include_dir(self) -> Path:
        return self.artifact.include_dir


class FFmpegBuilder:
    """
    Configures, builds and installs FFmpeg.

    Example usage:
        builder = FFmpegBuilder(config, ProcessRunner())
        result = builder.build(CrossCompileSettings(), PkgConfigPathChain())
        print(result.include_dir)
    """

    COMPONENT = "ffmpeg"

    BASE_CONFIGURE_FLAGS = (
        "--enable-gpl",
        "--enable-version3",
        "--disable-iconv",
        "--disable-zlib",
        "--disable-everything",
        "--disable-programs",
        "--disable-doc",
    )

    def __init__(self, config: BuildConfiguration, runner: ProcessRunner):
        self.config = config
        self.runner = runner

    @property
    def source_dir(self) -> Path:
        return self.config.vendor_dir / self.COMPONENT

    @property
    def artifact(self) -> NativeBuildArtifact:
        return NativeBuildArtifact(self.COMPONENT, self.config.out_dir / self.COMPONENT / "install")

    def configure_command(self, cross: CrossCompileSettings) -> List[str]:
        """Full configure command line, user flags last so they win."""
        configure_script = (self.source_dir / "configure").resolve()
        cmd = [str(configure_script), f"--prefix={self.artifact.prefix}"]
        cmd.extend(self.BASE_CONFIGURE_FLAGS)
        cmd.extend(cross.configure_flags)
        cmd.extend(self.config.ffmpeg_configuration)
        return cmd

    def build(
        self,
        cross: CrossCompileSettings,
        hwaccel_chain: PkgConfigPathChain
    ) -> FFmpegBuildResult:
        """
        Configure, clean, build and install FFmpeg.

        Args:
            cross: Cross compilation settings (empty for native builds)
            hwaccel_chain: pkg-config directories of optional dependencies

        Returns:
            FFmpegBuildResult with the install prefix and the final chain

        Raises:
            SubBuildError: If any phase exits non-zero
            BuildFilesystemError: If the vendored source is missing
        """
        if not self.source_dir.is_dir() and not self.runner.dry_run:
            raise BuildFilesystemError(
                f"Vendored source for {self.COMPONENT} not found: {self.source_dir}",
                path=self.source_dir,
            )

        env = self.config.environment
        if hwaccel_chain:
            env = env.with_path_appended(self.config.pkg_config_var, str(hwaccel_chain))

        source = str(self.source_dir)
        self.runner.run(
            self.configure_command(cross), self.COMPONENT, "configuring",
            cwd=self.source_dir, env=env,
        )
        self.runner.run(["make", "-C", source, "clean"], self.COMPONENT, "cleaning")
        self.runner.run(
            ["make", "-C", source, "-j", str(self.config.num_jobs)],
            self.COMPONENT, "building",
        )
        self.runner.run(["make", "-C", source, "install"], self.COMPONENT, "installing")

        artifact = self.artifact
        logging.info(f"Installed {self.COMPONENT} to {artifact.prefix}")

        return FFmpegBuildResult(
            artifact=artifact,
            pkg_config_chain=hwaccel_chain.append(artifact.pkg_config_dir),
        )
