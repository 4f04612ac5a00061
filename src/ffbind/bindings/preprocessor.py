"""
C preprocessing for binding generation.

The whitelisted headers are pulled into a single wrapper translation unit
and run through the system C preprocessor with ``-dD`` so macro
definitions survive next to the expanded code. The output is then split
into plain C (for the declaration parser) and an ordered list of macro
definitions (for constant evaluation).
"""

import logging
import re
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from ..config.environment import ChildProcessEnvironment
from ..errors import FFBindError


# GNU and clang extensions pycparser does not understand
GNU_SHIMS: Tuple[str, ...] = (
    "-D__attribute__(x)=",
    "-D__asm__(x)=",
    "-D__asm(x)=",
    "-D__declspec(x)=",
    "-D__extension__=",
    "-D__inline=inline",
    "-D__inline__=inline",
    "-D__restrict=",
    "-D__restrict__=",
    "-D__volatile__=volatile",
    "-D__signed__=signed",
    "-D__const=const",
    "-D__builtin_va_list=void*",
    "-D__int128=long long",
    "-D__float128=long double",
    "-D_Float32=float",
    "-D_Float64=double",
    "-D_Float32x=double",
    "-D_Float64x=long double",
    "-D_Float128=long double",
    "-D_Noreturn=",
    "-D_Nullable=",
    "-D_Nonnull=",
    "-D_Null_unspecified=",
)

# Line markers look like: # 12 "/usr/include/stdio.h" 1 3 4
LINE_MARKER = re.compile(r'^#\s*(?:line\s+)?\d+\s+"((?:[^"\\]|\\.)*)"')
DEFINE = re.compile(r"^#\s*define\s+([A-Za-z_]\w*)(\(?)(.*)$")
UNDEF = re.compile(r"^#\s*undef\s+([A-Za-z_]\w*)")

# Pseudo files holding compiler and command line macros
PSEUDO_FILES = ("<built-in>", "<command-line>", "<command line>")


class PreprocessorError(FFBindError):
    """Raised when the C preprocessor cannot be run or fails."""


@dataclass(frozen=True)
class MacroDefinition:
    """An object-like macro as seen by the preprocessor."""

    name: str
    body: str
    file: str


@dataclass(frozen=True)
class PreprocessedSource:
    """Preprocessor output split into code and macros."""

    code: str
    macros: Tuple[MacroDefinition, ...] = field(default_factory=tuple)


def wrapper_source(headers: Sequence[Path]) -> str:
    """Translation unit including every header, in order."""
    return "".join(f'#include "{header.as_posix()}"\n' for header in headers)


def split_output(output: str) -> PreprocessedSource:
    """
    Split ``cc -E -dD`` output.

    Macros defined by the compiler itself or on the command line are
    dropped. An ``#undef`` removes the macro it names; a redefinition
    replaces the earlier one but keeps its position.
    """
    code_lines: List[str] = []
    macros = {}
    current_file = ""

    for line in output.splitlines():
        stripped = line.strip()
        if not stripped.startswith("#"):
            code_lines.append(line)
            continue

        marker = LINE_MARKER.match(stripped)
        if marker:
            current_file = marker.group(1)
            code_lines.append(line)
            continue

        define = DEFINE.match(stripped)
        if define:
            name, paren, body = define.groups()
            # Function-like macros are not constants
            if paren or current_file in PSEUDO_FILES:
                continue
            macros[name] = MacroDefinition(name, body.strip(), current_file)
            continue

        undef = UNDEF.match(stripped)
        if undef:
            macros.pop(undef.group(1), None)
            continue

        if stripped.startswith("#pragma"):
            code_lines.append(line)

    return PreprocessedSource(code="\n".join(code_lines) + "\n", macros=tuple(macros.values()))


class CPreprocessor:
    """
    Runs the system C preprocessor over the whitelisted headers.

    Example usage:
        preprocessor = CPreprocessor(ChildProcessEnvironment.from_process())
        source = preprocessor.preprocess(headers, [Path("/opt/ffmpeg/include")])
        print(len(source.macros))
    """

    def __init__(
        self,
        env: ChildProcessEnvironment,
        compiler: Optional[str] = None,
        extra_args: Sequence[str] = (),
        run: Optional[Callable[..., subprocess.CompletedProcess]] = None
    ):
        """
        Initialize preprocessor.

        Args:
            env: Child process environment
            compiler: C compiler (default: $CC or cc)
            extra_args: Additional preprocessor arguments
            run: subprocess.run replacement
        """
        self.env = env
        self.compiler = compiler or env.get("CC", "cc")
        self.extra_args = tuple(extra_args)
        self._run = run or subprocess.run

    def command(self, source: Path, include_dirs: Sequence[Path]) -> List[str]:
        cmd = [self.compiler, "-E", "-dD"]
        cmd.extend(f"-I{include_dir}" for include_dir in include_dirs)
        cmd.extend(GNU_SHIMS)
        cmd.extend(self.extra_args)
        cmd.append(str(source))
        return cmd

    def preprocess(self, headers: Sequence[Path], include_dirs: Sequence[Path]) -> PreprocessedSource:
        """
        Preprocess ``headers`` as one translation unit.

        Raises:
            PreprocessorError: If the compiler is missing or exits non-zero
        """
        with tempfile.TemporaryDirectory(prefix="ffbind-") as tmp:
            source = Path(tmp) / "wrapper.c"
            source.write_text(wrapper_source(headers), encoding="utf-8")
            cmd = self.command(source, include_dirs)
            logging.debug(f"Preprocessing {len(headers)} headers: {' '.join(cmd)}")

            try:
                result = self._run(cmd, capture_output=True, text=True, env=self.env.as_dict())
            except OSError as e:
                raise PreprocessorError(f"Failed to run {self.compiler}: {e}") from e

        if result.returncode != 0:
            raise PreprocessorError(
                f"{self.compiler} failed to preprocess headers (exit code {result.returncode})\n"
                f"{result.stderr.strip()}"
            )

        return split_output(result.stdout)
