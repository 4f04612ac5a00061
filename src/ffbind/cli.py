"""
Command-line interface for ffbind.

This module provides the `ffbind` CLI tool for building FFmpeg and
generating its binding.
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ffbind import __version__
from ffbind.bindings import BindingGenerator, BindingOptions
from ffbind.build.directives import DirectiveSink
from ffbind.build.linker import LIBS, ProbeBasedLinker
from ffbind.build.orchestrator import BuildOrchestrator
from ffbind.build.pkg_config import PkgConfigProber
from ffbind.build.process_runner import ProcessRunner
from ffbind.cli_utils import BuildInputResolver, ErrorFormatter, setup_logging
from ffbind.config import ChildProcessEnvironment, ConfigurationLoader, LinkMode
from ffbind.errors import FFBindError


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    out_dir: Optional[Path] = None
    target: Optional[str] = None
    jobs: Optional[int] = None
    link_mode: Optional[str] = None
    rockchip_mpp: bool = False
    dry_run: bool = False
    verbose: bool = False


@dataclass
class BindgenArgs:
    """Arguments for the bindgen command."""

    include_dir: Path
    output: Path
    prefix_enum_constants: bool = False
    debug_helpers: bool = True
    verbose: bool = False


@dataclass
class ProbeArgs:
    """Arguments for the probe command."""

    link_mode: Optional[str] = None
    verbose: bool = False


def build_command(args: BuildArgs) -> None:
    """Build FFmpeg and generate its binding.

    Examples:
        ffbind build                          # Build for the host
        ffbind build --out-dir out            # Build into ./out
        ffbind build --target aarch64-unknown-linux-gnu
        ffbind build --link-mode static       # Static linkage directives
        ffbind build --dry-run -v             # Show commands only
    """
    print(f"ffbind Build System v{__version__}")
    print()

    try:
        defaults = BuildInputResolver.ini_defaults(Path.cwd())
        inputs = BuildInputResolver.resolve(
            os.environ,
            out_dir=args.out_dir,
            target=args.target,
            jobs=args.jobs,
            link_mode=args.link_mode,
            rockchip_mpp=args.rockchip_mpp,
            defaults=defaults,
        )

        sink = DirectiveSink()
        config = ConfigurationLoader(inputs, sink).load()

        if args.verbose:
            print(f"Target: {config.target.triple}")
            print(f"Output: {config.out_dir}")
            print(f"Jobs: {config.num_jobs}")
            print()

        orchestrator = BuildOrchestrator(
            runner=ProcessRunner(dry_run=args.dry_run, verbose=args.verbose),
            verbose=args.verbose,
        )
        result = orchestrator.build(config, sink)

        ErrorFormatter.print_success("Build successful!")
        print()
        print(f"Headers: {result.include_dir}")
        if result.binding_path is not None:
            print(f"Binding: {result.binding_path}")
        if result.manifest_path is not None:
            print(f"Link manifest: {result.manifest_path}")
        print(f"Build time: {result.build_time:.2f}s")
        sys.exit(0)

    except FFBindError as e:
        ErrorFormatter.handle_ffbind_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def bindgen_command(args: BindgenArgs) -> None:
    """Generate the binding from an existing FFmpeg include directory.

    Examples:
        ffbind bindgen /usr/include out       # Writes out/binding.py
    """
    try:
        options = BindingOptions(
            prefix_enum_constants=args.prefix_enum_constants,
            impl_debug=args.debug_helpers,
        )
        generator = BindingGenerator(ChildProcessEnvironment.from_process(), options)
        artifact = generator.generate(args.include_dir, args.output)
        ErrorFormatter.print_success(f"Binding written to {artifact}")
        sys.exit(0)

    except FFBindError as e:
        ErrorFormatter.handle_ffbind_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def probe_command(args: ProbeArgs) -> None:
    """Check that pkg-config finds every FFmpeg library.

    Nothing is emitted; this is the dry pass of the build's link phase
    against the current environment.

    Examples:
        ffbind probe
        PKG_CONFIG_PATH=out/ffmpeg/install/lib/pkgconfig ffbind probe --link-mode static
    """
    try:
        statik = LinkMode.parse(args.link_mode).is_static if args.link_mode else False
        linker = ProbeBasedLinker(PkgConfigProber(ChildProcessEnvironment.from_process(), statik=statik))
        libraries = linker.dry_run()

        for library in libraries:
            print(f"  {library.name:<16} {library.version}")
            if args.verbose:
                for path in library.link_paths:
                    print(f"      -L{path}")
                for path in library.include_paths:
                    print(f"      -I{path}")

        ErrorFormatter.print_success(f"All {len(LIBS)} libraries found")
        sys.exit(0)

    except FFBindError as e:
        ErrorFormatter.handle_ffbind_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ffbind",
        description="ffbind - FFmpeg build orchestrator and binding generator",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ffbind {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Build FFmpeg from vendored sources and generate the binding",
    )
    build_parser.add_argument(
        "-o",
        "--out-dir",
        type=Path,
        default=None,
        help="Output directory (default: $OUT_DIR or ./target/ffbind)",
    )
    build_parser.add_argument(
        "-t",
        "--target",
        default=None,
        help="Target triple (default: $TARGET or the host)",
    )
    build_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Parallel build jobs (default: $NUM_JOBS or the CPU count)",
    )
    build_parser.add_argument(
        "--link-mode",
        choices=[mode.value for mode in LinkMode],
        default=None,
        help="Link mode (default: $FFMPEG_LINK_MODE)",
    )
    build_parser.add_argument(
        "--rockchip-mpp",
        action="store_true",
        help="Build the Rockchip hardware acceleration libraries",
    )
    build_parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print build commands without running them",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose build output",
    )

    # Bindgen command
    bindgen_parser = subparsers.add_parser(
        "bindgen",
        help="Generate the binding from an FFmpeg include directory",
    )
    bindgen_parser.add_argument(
        "include_dir",
        type=Path,
        help="Directory holding libavcodec/, libavutil/, ...",
    )
    bindgen_parser.add_argument(
        "output",
        type=Path,
        help="Directory the binding is written to",
    )
    bindgen_parser.add_argument(
        "--prefix-enum-constants",
        action="store_true",
        help="Name enum constants <Enum>_<CONSTANT> in CONSTANTS",
    )
    bindgen_parser.add_argument(
        "--no-debug-helpers",
        dest="debug_helpers",
        action="store_false",
        help="Do not emit the describe() helper",
    )
    bindgen_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    # Probe command
    probe_parser = subparsers.add_parser(
        "probe",
        help="Check that pkg-config finds every FFmpeg library",
    )
    probe_parser.add_argument(
        "--link-mode",
        choices=[mode.value for mode in LinkMode],
        default=None,
        help="Probe the static link line when 'static'",
    )
    probe_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show search and include paths",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the ffbind CLI."""
    parser = create_parser()

    # Parse arguments
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(parsed_args.verbose)
    logging.debug(f"ffbind {__version__}: {parsed_args.command}")

    # Execute command
    if parsed_args.command == "build":
        build_args = BuildArgs(
            out_dir=parsed_args.out_dir,
            target=parsed_args.target,
            jobs=parsed_args.jobs,
            link_mode=parsed_args.link_mode,
            rockchip_mpp=parsed_args.rockchip_mpp,
            dry_run=parsed_args.dry_run,
            verbose=parsed_args.verbose,
        )
        build_command(build_args)
    elif parsed_args.command == "bindgen":
        bindgen_args = BindgenArgs(
            include_dir=parsed_args.include_dir,
            output=parsed_args.output,
            prefix_enum_constants=parsed_args.prefix_enum_constants,
            debug_helpers=parsed_args.debug_helpers,
            verbose=parsed_args.verbose,
        )
        bindgen_command(bindgen_args)
    elif parsed_args.command == "probe":
        probe_args = ProbeArgs(
            link_mode=parsed_args.link_mode,
            verbose=parsed_args.verbose,
        )
        probe_command(probe_args)


if __name__ == "__main__":
    main()
