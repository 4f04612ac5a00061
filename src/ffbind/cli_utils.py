"""CLI utility functions for ffbind.

This module provides common utilities used across CLI commands including:
- Build input resolution from command-line arguments and defaults
- Logging setup
- Error handling and formatting
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Mapping, Optional

import psutil

from ffbind.config import FFBindIniConfig, LinkMode
from ffbind.errors import FFBindError
from ffbind.packages import PlatformDetector


INI_NAME = "ffbind.ini"


class BuildInputResolver:
    """Fills build inputs the environment does not provide.

    Command-line arguments override the environment; values neither
    provides fall back to host defaults (target triple, CPU count).
    """

    @staticmethod
    def default_jobs() -> int:
        return psutil.cpu_count() or 1

    @staticmethod
    def resolve(
        environ: Mapping[str, str],
        out_dir: Optional[Path] = None,
        target: Optional[str] = None,
        jobs: Optional[int] = None,
        link_mode: Optional[str] = None,
        rockchip_mpp: bool = False,
        defaults: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        """Build the input mapping for ConfigurationLoader.

        Args:
            environ: Process environment
            out_dir: --out-dir
            target: --target
            jobs: --jobs
            link_mode: --link-mode
            rockchip_mpp: --rockchip-mpp
            defaults: ffbind.ini defaults, below the environment

        Returns:
            Input mapping with TARGET, OUT_DIR and NUM_JOBS always present.
            FFMPEG_CONFIGURATION is never filled in and stays required
        """
        inputs = dict(defaults or {})
        inputs.update(environ)

        if out_dir is not None:
            inputs["OUT_DIR"] = str(out_dir)
        if target is not None:
            inputs["TARGET"] = target
        if jobs is not None:
            inputs["NUM_JOBS"] = str(jobs)
        if link_mode is not None:
            inputs["FFMPEG_LINK_MODE"] = LinkMode.parse(link_mode).value
        if rockchip_mpp:
            inputs["FFMPEG_ROCKCHIP_MPP"] = "true"

        inputs.setdefault("TARGET", PlatformDetector.host_triple())
        inputs.setdefault("OUT_DIR", str(Path.cwd() / "target" / "ffbind"))
        inputs.setdefault("NUM_JOBS", str(BuildInputResolver.default_jobs()))
        return inputs

    @staticmethod
    def ini_defaults(project_dir: Path) -> Dict[str, str]:
        """Defaults from ``ffbind.ini`` in ``project_dir`` (empty when absent)."""
        return FFBindIniConfig(project_dir / INI_NAME).get_defaults()


def setup_logging(verbose: bool = False) -> None:
    """Route library diagnostics to stderr; DEBUG with -v."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    TITLES = {
        "ConfigurationError": "Configuration error",
        "SubBuildError": "Build failed",
        "ProbeError": "Library not found",
        "BindingGenerationError": "Binding generation failed",
        "PreprocessorError": "Binding generation failed",
        "BuildFilesystemError": "Filesystem error",
    }

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Configuration error", "Build failed")
            message: Error message details
        """
        print(file=sys.stderr)
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}", file=sys.stderr)
        print(file=sys.stderr)
        print(message, file=sys.stderr)
        print(file=sys.stderr)

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print(file=sys.stderr)
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}", file=sys.stderr)

    @staticmethod
    def title_for(error: FFBindError) -> str:
        return ErrorFormatter.TITLES.get(type(error).__name__, "Build failed")

    @staticmethod
    def handle_ffbind_error(error: FFBindError) -> None:
        """Print an ffbind error and exit with status 1."""
        ErrorFormatter.print_error(ErrorFormatter.title_for(error), str(error))
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:", file=sys.stderr)
            print(traceback.format_exc(), file=sys.stderr)

        sys.exit(1)
