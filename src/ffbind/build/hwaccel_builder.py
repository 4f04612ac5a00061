"""
Rockchip hardware acceleration libraries.

FFmpeg's rkmpp codecs need two vendored native libraries:
- rockchip-librga (meson): 2D raster graphics acceleration
- rockchip-mpp (cmake): media process platform

Both are built as static release libraries and installed into their own
prefix under the output directory. Their pkg-config directories are
returned in build order so FFmpeg's configure can detect them.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..config.build_config import BuildConfiguration
from ..errors import BuildFilesystemError
from .artifacts import NativeBuildArtifact, PkgConfigPathChain
from .process_runner import ProcessRunner


@dataclass(frozen=True)
class HardwareAccelerationResult:
    """Installed hardware acceleration libraries."""

    artifacts: Tuple[NativeBuildArtifact, ...]
    pkg_config_chain: PkgConfigPathChain
    # Dynamic byproducts that must be removed to force static linking
    cleanup_files: Tuple[Path, ...] = field(default_factory=tuple)


class HardwareAccelerationBuilder:
    """
    Builds rockchip-librga and rockchip-mpp from vendored sources.

    Example usage:
        builder = HardwareAccelerationBuilder(config, ProcessRunner())
        result = builder.build(meson_cross_file=None)
        print(result.pkg_config_chain)
    """

    LIBRGA = "rockchip-librga"
    MPP = "rockchip-mpp"

    # Shared objects the mpp build installs regardless of BUILD_SHARED_LIBS
    MPP_SHARED_OBJECTS = ("librockchip_mpp.so", "librockchip_vpu.so")

    def __init__(self, config: BuildConfiguration, runner: ProcessRunner):
        self.config = config
        self.runner = runner

    def build(self, meson_cross_file: Optional[Path] = None) -> HardwareAccelerationResult:
        """
        Build and install both libraries, librga first.

        Args:
            meson_cross_file: Cross file for the meson build (None for native)

        Returns:
            HardwareAccelerationResult with pkg-config directories in build order

        Raises:
            SubBuildError: If any configure/build/install phase fails
            BuildFilesystemError: If a vendored source directory is missing
        """
        librga = self.build_librga(meson_cross_file)
        mpp = self.build_mpp()

        chain = PkgConfigPathChain().append(librga.pkg_config_dir).append(mpp.pkg_config_dir)
        cleanup = tuple(mpp.lib_dir / name for name in self.MPP_SHARED_OBJECTS)

        return HardwareAccelerationResult(
            artifacts=(librga, mpp),
            pkg_config_chain=chain,
            cleanup_files=cleanup,
        )

    def _source_dir(self, component: str) -> Path:
        source_dir = self.config.vendor_dir / component
        if not source_dir.is_dir() and not self.runner.dry_run:
            raise BuildFilesystemError(
                f"Vendored source for {component} not found: {source_dir}",
                path=source_dir,
            )
        return source_dir

    def build_librga(self, meson_cross_file: Optional[Path] = None) -> NativeBuildArtifact:
        """Configure, build and install rockchip-librga with meson/ninja."""
        source_dir = self._source_dir(self.LIBRGA)
        out_dir = self.config.out_dir / self.LIBRGA
        build_dir = out_dir / "meson"
        artifact = NativeBuildArtifact(self.LIBRGA, out_dir / "install")

        setup_cmd: List[str] = ["meson", "setup", str(source_dir), str(build_dir)]
        if meson_cross_file is not None:
            setup_cmd.extend(["--cross-file", str(meson_cross_file)])
        setup_cmd.extend([
            "--prefix", str(artifact.prefix),
            "--libdir=lib",
            "--buildtype=release",
            "--default-library=static",
            "-Dcpp_args=-fpermissive",
            "-Dlibdrm=false",
            "-Dlibrga_demo=false",
        ])

        self.runner.run(setup_cmd, self.LIBRGA, "setting up")
        self.runner.run(["meson", "configure", str(build_dir)], self.LIBRGA, "configuring")
        self.runner.run(["ninja", "-C", str(build_dir), "install"], self.LIBRGA, "building")

        logging.info(f"Installed {self.LIBRGA} to {artifact.prefix}")
        return artifact

    def build_mpp(self) -> NativeBuildArtifact:
        """Configure, build and install rockchip-mpp with cmake/ninja."""
        source_dir = self._source_dir(self.MPP)
        out_dir = self.config.out_dir / self.MPP
        build_dir = out_dir / "cmake"
        artifact = NativeBuildArtifact(self.MPP, out_dir / "install")

        configure_cmd: List[str] = [
            "cmake",
            "-GNinja",
            f"-DCMAKE_INSTALL_PREFIX={artifact.prefix}",
            "-DCMAKE_BUILD_TYPE=Release",
            "-DBUILD_SHARED_LIBS=OFF",
            f"-S{source_dir}",
            f"-B{build_dir}",
        ]
        if self.config.cmake_toolchain_file is not None:
            configure_cmd.extend(["--toolchain", str(self.config.cmake_toolchain_file)])

        self.runner.run(configure_cmd, self.MPP, "configuring")
        self.runner.run(["ninja", "-C", str(build_dir), "install"], self.MPP, "building")

        logging.info(f"Installed {self.MPP} to {artifact.prefix}")
        return artifact


def remove_dynamic_artifacts(paths: Tuple[Path, ...], dry_run: bool = False) -> List[Path]:
    """
    Delete shared objects that would defeat static linking.

    Args:
        paths: Files to delete
        dry_run: Only log what would be removed

    Returns:
        The removed paths

    Raises:
        BuildFilesystemError: If a file is missing or cannot be removed
    """
    removed = []
    for path in paths:
        if dry_run:
            logging.info(f"Would remove {path}")
            continue
        try:
            path.unlink()
        except OSError as e:
            raise BuildFilesystemError(f"Failed to remove {path} file: {e}", path=path) from e
        logging.info(f"Removed dynamic artifact {path}")
        removed.append(path)
    return removed
