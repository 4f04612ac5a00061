"""Platform Detection Utilities.

This module detects the host platform ffbind runs on. The host decides how
FFmpeg is linked: pkg-config probing on Linux and macOS, a plain library
directory on Windows.
"""

import platform


class PlatformError(Exception):
    """Raised when platform detection fails or platform is unsupported."""

    pass


class PlatformDetector:
    """Detects the current platform and architecture."""

    @staticmethod
    def host_system() -> str:
        """Normalized host system name.

        Returns:
            'windows', 'linux' or 'macos'

        Raises:
            PlatformError: If the platform is unsupported
        """
        system = platform.system().lower()
        if system == "windows":
            return "windows"
        elif system == "linux":
            return "linux"
        elif system == "darwin":
            return "macos"
        raise PlatformError(f"Unsupported platform: {system}")

    @staticmethod
    def is_windows() -> bool:
        return PlatformDetector.host_system() == "windows"

    @staticmethod
    def host_arch() -> str:
        """Normalized host architecture ('x86_64', 'i686', 'aarch64', 'armv7')."""
        machine = platform.machine().lower()

        if machine in ("x86_64", "amd64"):
            return "x86_64"
        elif machine in ("i386", "i686"):
            return "i686"
        elif machine in ("aarch64", "arm64"):
            return "aarch64"
        elif machine.startswith("arm"):
            return "armv7"
        # Default to x86_64 if unknown
        return "x86_64"

    @staticmethod
    def host_triple() -> str:
        """Best guess at the host target triple, used when TARGET is unset.

        Example:
            x86_64-unknown-linux-gnu, aarch64-apple-darwin, x86_64-pc-windows-msvc
        """
        arch = PlatformDetector.host_arch()
        system = PlatformDetector.host_system()
        if system == "windows":
            return f"{arch}-pc-windows-msvc"
        elif system == "macos":
            return f"{arch}-apple-darwin"
        return f"{arch}-unknown-linux-gnu"
