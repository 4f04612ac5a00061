"""Cross compilation settings.

When a cross toolchain prefix (e.g. ``aarch64-linux-gnu-``) is configured,
this module writes the meson cross file used by the meson based sub-build
and produces the matching flags for FFmpeg's own configure script.
"""

import configparser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from ..config.build_config import BuildConfiguration, TargetTriple
from ..errors import BuildFilesystemError


# FFmpeg's configure wants a CPU name rather than the architecture for arm64
CPU_NAMES = {
    "aarch64": "armv8-a",
}

# Meson cpu_family values that differ from the triple architecture
MESON_CPU_FAMILIES = {
    "i686": "x86",
    "i586": "x86",
    "armv7": "arm",
    "arm": "arm",
    "powerpc64le": "ppc64",
}

BIG_ENDIAN_ARCHS = {"mips", "mips64", "powerpc", "powerpc64", "s390x", "sparc64"}


def ffmpeg_cpu_name(arch: str) -> str:
    """Translate a target architecture to FFmpeg's --cpu value."""
    return CPU_NAMES.get(arch, arch)


@dataclass(frozen=True)
class CrossCompileSettings:
    """Result of cross compilation setup.

    For native builds both fields are empty.
    """

    meson_cross_file: Optional[Path] = None
    configure_flags: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def enabled(self) -> bool:
        return self.meson_cross_file is not None


class CrossFileGenerator:
    """Generates the toolchain descriptor and configure flags.

    Example usage:
        settings = CrossFileGenerator(config).generate()
        if settings.enabled:
            print(settings.meson_cross_file)
    """

    FILE_NAME = "meson_cross.txt"

    def __init__(self, config: BuildConfiguration):
        self.config = config

    def generate(self) -> CrossCompileSettings:
        """Write the cross file when cross compiling.

        Returns:
            CrossCompileSettings (empty for native builds)

        Raises:
            BuildFilesystemError: If the cross file cannot be written
        """
        prefix = self.config.cross_toolchain_prefix
        if prefix is None:
            return CrossCompileSettings()

        target = self.config.target
        cross_path = self.config.out_dir / self.FILE_NAME
        self.write_meson_cross_file(cross_path, prefix, target)

        return CrossCompileSettings(
            meson_cross_file=cross_path,
            configure_flags=self.configure_flags(prefix, target),
        )

    @staticmethod
    def configure_flags(prefix: str, target: TargetTriple) -> Tuple[str, ...]:
        """Flags for FFmpeg's configure script."""
        return (
            "--enable-cross-compile",
            f"--cc={prefix}gcc",
            f"--cxx={prefix}g++",
            f"--ld={prefix}g++",
            f"--ar={prefix}ar",
            f"--strip={prefix}strip",
            f"--cpu={ffmpeg_cpu_name(target.arch)}",
            f"--target-os={target.os}",
            f"--arch={target.arch}",
        )

    @staticmethod
    def write_meson_cross_file(path: Path, prefix: str, target: TargetTriple) -> Path:
        """Write a meson cross file.

        Meson cross files are INI files whose string values are quoted
        meson literals.
        """
        cross = configparser.ConfigParser(interpolation=None)
        cross["binaries"] = {
            "c": f"'{prefix}gcc'",
            "cpp": f"'{prefix}g++'",
            "ar": f"'{prefix}ar'",
            "strip": f"'{prefix}strip'",
        }
        cross["host_machine"] = {
            "system": f"'{target.os}'",
            "cpu_family": f"'{MESON_CPU_FAMILIES.get(target.arch, target.arch)}'",
            "cpu": f"'{target.arch}'",
            "endian": "'big'" if target.arch in BIG_ENDIAN_ARCHS else "'little'",
        }
        cross["properties"] = {
            "needs_exe_wrapper": "true",
        }

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                cross.write(f)
        except OSError as e:
            raise BuildFilesystemError(f"Failed to write {path}: {e}", path=path) from e

        return path
