"""
Binding generation for the FFmpeg public headers.

The generator preprocesses the whitelisted headers, parses the result with
pycparser and writes a Python module holding:

- CDEF: the declarations, ready for ``cffi.FFI.cdef``
- CONSTANTS: macro and enum constants evaluated to Python values
- get_ffi(): a cached FFI instance built from CDEF
- describe(): a readable dump of struct values (debug helper)

Declarations coming from FFmpeg's own headers are always kept. System
header declarations are only kept when an FFmpeg declaration refers to
them, directly or through other kept declarations. Standard C types
(int64_t, size_t, FILE, ...) are left to cffi, which knows them already.
"""

import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from pycparser import c_ast, c_generator, c_parser

from ..config.environment import ChildProcessEnvironment
from ..errors import BuildFilesystemError, FFBindError
from .headers import BLOCKLISTED_TYPES, MACRO_FILTER, HeaderWhitelist
from .macros import Constant, MacroEvaluator, evaluate
from .preprocessor import CPreprocessor, PreprocessedSource


ARTIFACT_NAME = "binding.py"

VERSION_HEADER = "libavutil/ffversion.h"
VERSION_DEFINE = re.compile(r'#\s*define\s+FFMPEG_VERSION\s+"([^"]*)"')
VERSION_COMMENT = re.compile(r"^# Library version: (.*)$", re.MULTILINE)

# Types cffi defines itself; redeclaring them is an error
CFFI_STANDARD_TYPES: FrozenSet[str] = frozenset({
    "_Bool", "bool", "FILE", "size_t", "ssize_t", "ptrdiff_t",
    "wchar_t", "char16_t", "char32_t", "intptr_t", "uintptr_t",
    "intmax_t", "uintmax_t",
    "int8_t", "uint8_t", "int16_t", "uint16_t",
    "int32_t", "uint32_t", "int64_t", "uint64_t",
    "int_least8_t", "uint_least8_t", "int_least16_t", "uint_least16_t",
    "int_least32_t", "uint_least32_t", "int_least64_t", "uint_least64_t",
    "int_fast8_t", "uint_fast8_t", "int_fast16_t", "uint_fast16_t",
    "int_fast32_t", "uint_fast32_t", "int_fast64_t", "uint_fast64_t",
})


class BindingGenerationError(FFBindError):
    """Raised when the headers cannot be turned into a binding."""


@dataclass(frozen=True)
class BindingOptions:
    """Knobs of the binding generator."""

    # Namespace enum constants as <Enum>_<CONSTANT> in CONSTANTS
    prefix_enum_constants: bool = False
    # Emit the describe() debug helper
    impl_debug: bool = True
    ignored_macros: FrozenSet[str] = MACRO_FILTER
    blocklisted_types: FrozenSet[str] = BLOCKLISTED_TYPES
    # Extra preprocessor arguments (-D, -I, --target, ...)
    extra_args: Tuple[str, ...] = field(default_factory=tuple)


@dataclass
class _Item:
    node: c_ast.Node
    file: str
    defines: Set[Tuple[str, str]]
    kept: bool = False


@dataclass
class CollectedDeclarations:
    declarations: List[str] = field(default_factory=list)
    enum_constants: Dict[str, Constant] = field(default_factory=dict)
    enumerators: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class ParsedHeaders:
    """Declarations and constants extracted from the headers."""

    declarations: Tuple[str, ...]
    constants: Dict[str, Constant]
    cdef_macros: Dict[str, int]


class _References(c_ast.NodeVisitor):
    """Collects the type names and tags a declaration refers to."""

    def __init__(self):
        self.names: Set[Tuple[str, str]] = set()

    def visit_IdentifierType(self, node):
        for name in node.names:
            self.names.add(("type", name))

    def _visit_tagged(self, kind, node):
        if node.name:
            self.names.add((kind, node.name))
        self.generic_visit(node)

    def visit_Struct(self, node):
        self._visit_tagged("struct", node)

    def visit_Union(self, node):
        self._visit_tagged("union", node)

    def visit_Enum(self, node):
        self._visit_tagged("enum", node)


def references(node: c_ast.Node) -> Set[Tuple[str, str]]:
    visitor = _References()
    visitor.visit(node)
    return visitor.names


def _tag_definition(node: c_ast.Node) -> Optional[Tuple[str, str]]:
    """(kind, tag) for a struct/union/enum node with a body."""
    if isinstance(node, (c_ast.Struct, c_ast.Union)) and node.name and node.decls is not None:
        return ("struct" if isinstance(node, c_ast.Struct) else "union", node.name)
    if isinstance(node, c_ast.Enum) and node.name and node.values is not None:
        return ("enum", node.name)
    return None


def _body(node: c_ast.Node):
    return node.values if isinstance(node, c_ast.Enum) else node.decls


def _typedef_target(node: c_ast.Typedef) -> c_ast.Node:
    target = node.type
    while isinstance(target, c_ast.TypeDecl):
        target = target.type
    return target


def read_library_version(include_dir: Path) -> Optional[str]:
    """FFMPEG_VERSION from libavutil/ffversion.h, if the header exists."""
    path = include_dir.joinpath(*VERSION_HEADER.split("/"))
    if not path.exists():
        return None
    match = VERSION_DEFINE.search(path.read_text(encoding="utf-8", errors="replace"))
    return match.group(1) if match else None


def read_artifact_version(artifact: Path) -> Optional[str]:
    """Library version recorded in a binding artifact's header comment."""
    with open(artifact, "r", encoding="utf-8", errors="replace") as f:
        head = f.read(4096)
    match = VERSION_COMMENT.search(head)
    return match.group(1).strip() if match else None


class DeclarationCollector:
    """
    Selects and renders top level declarations in translation unit order.

    Example usage:
        collector = DeclarationCollector([Path("/opt/ffmpeg/include")])
        collected = collector.collect(ast, prefix_enum_constants=False)
    """

    def __init__(self, include_dirs: Sequence[Path], blocklisted_types: Iterable[str] = BLOCKLISTED_TYPES):
        self.include_dirs = [os.path.abspath(str(path)) for path in include_dirs]
        self.blocklisted_types = frozenset(blocklisted_types)
        self._generator = c_generator.CGenerator()

    def is_own(self, file: str) -> bool:
        """Whether ``file`` lives under one of the include directories."""
        path = os.path.abspath(file)
        return any(
            path == include_dir or path.startswith(include_dir + os.sep)
            for include_dir in self.include_dirs
        )

    def _classify(self, node: c_ast.Node) -> Optional[_Item]:
        file = node.coord.file if node.coord is not None else ""

        if isinstance(node, c_ast.Typedef):
            if node.name in self.blocklisted_types or node.name in CFFI_STANDARD_TYPES:
                return None
            defines = {("type", node.name)}
            tag = _tag_definition(_typedef_target(node))
            if tag:
                defines.add(tag)
            return _Item(node, file, defines)

        if isinstance(node, c_ast.Decl):
            if isinstance(node.type, (c_ast.Struct, c_ast.Union, c_ast.Enum)):
                tag = _tag_definition(node.type)
                if _body(node.type) is None:
                    # Forward declaration, unknown tags are opaque to cffi
                    return None
                if tag is None:
                    tag = ("anonymous", f"{file}:{node.coord.line}")
                return _Item(node, file, {tag})
            if "static" in node.storage or not node.name or node.name.startswith("__builtin"):
                return None
            if isinstance(node.type, c_ast.FuncDecl):
                node.funcspec = [spec for spec in node.funcspec if spec != "inline"]
                return _Item(node, file, {("function", node.name)})
            return _Item(node, file, {("variable", node.name)})

        # Function definitions (static inline helpers), pragmas and
        # static assertions have no place in a declaration list
        return None

    def select(self, ast: c_ast.FileAST) -> List[_Item]:
        """Keep own declarations plus what they transitively refer to."""
        items: List[_Item] = []
        defined: Set[Tuple[str, str]] = set()
        for node in ast.ext:
            item = self._classify(node)
            if item is None:
                continue
            # First definition wins
            if item.defines & defined:
                continue
            defined |= item.defines
            item.kept = self.is_own(item.file)
            items.append(item)

        needed: Set[Tuple[str, str]] = set()
        for item in items:
            if item.kept:
                needed |= references(item.node)

        changed = True
        while changed:
            changed = False
            for item in items:
                if not item.kept and item.defines & needed:
                    item.kept = True
                    needed |= references(item.node)
                    changed = True

        return [item for item in items if item.kept]

    def collect(self, ast: c_ast.FileAST, prefix_enum_constants: bool = False) -> CollectedDeclarations:
        """
        Render the kept declarations and evaluate their enum constants.

        Returns:
            CollectedDeclarations in translation unit order
        """
        collected = CollectedDeclarations()
        known: Dict[str, Constant] = {}

        for item in self.select(ast):
            for enum, owner in self._enums(item.node):
                collected.enumerators.update(e.name for e in enum.values.enumerators)
                self._evaluate_enum(enum, owner, prefix_enum_constants, known, collected.enum_constants)
            collected.declarations.append(self._generator.visit(item.node) + ";")

        return collected

    @staticmethod
    def _enums(node: c_ast.Node):
        """Enum definitions in ``node`` with the name used for prefixing."""
        owner = node.name if isinstance(node, c_ast.Typedef) else None
        for child in _walk(node):
            if isinstance(child, c_ast.Enum) and child.values is not None:
                yield child, child.name or owner

    def _evaluate_enum(
        self,
        enum: c_ast.Enum,
        owner: Optional[str],
        prefix: bool,
        known: Dict[str, Constant],
        out: Dict[str, Constant]
    ) -> None:
        next_value: Optional[int] = 0
        for enumerator in enum.values.enumerators:
            if enumerator.value is not None:
                value = evaluate(self._generator.visit(enumerator.value), known)
                next_value = value if isinstance(value, int) else None
                if next_value is not None:
                    # Fold to a literal
                    enumerator.value = _int_constant(next_value)
            if next_value is None:
                continue
            known[enumerator.name] = next_value
            key = f"{owner}_{enumerator.name}" if prefix and owner else enumerator.name
            out[key] = next_value
            next_value += 1


def _walk(node: c_ast.Node):
    yield node
    for _, child in node.children():
        yield from _walk(child)


def _int_constant(value: int) -> c_ast.Node:
    if value < 0:
        return c_ast.UnaryOp("-", c_ast.Constant("int", str(-value)))
    return c_ast.Constant("int", str(value))


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def render_artifact(
    parsed: ParsedHeaders,
    headers: Sequence[str],
    version: Optional[str],
    impl_debug: bool = True
) -> str:
    """Render the binding module source. Output depends only on the inputs."""
    lines = ["# Generated by ffbind from the FFmpeg public headers. Do not edit."]
    if version is not None:
        lines.append(f"# Library version: {version}")
    lines.extend([
        '"""FFmpeg declarations for cffi."""',
        "",
        "from functools import lru_cache",
        "",
        "from cffi import FFI",
        "",
        "",
        f"FFMPEG_VERSION = {version!r}",
        "",
        "HEADERS = (",
    ])
    lines.extend(f"    {header!r}," for header in headers)
    lines.extend([")", "", 'CDEF = """'])
    lines.extend(_escape(f"#define {name} {value}") for name, value in parsed.cdef_macros.items())
    lines.extend(_escape(declaration) for declaration in parsed.declarations)
    lines.extend(['"""', "", "CONSTANTS = {"])
    lines.extend(f"    {name!r}: {value!r}," for name, value in parsed.constants.items())
    lines.extend([
        "}",
        "",
        "",
        "@lru_cache(maxsize=None)",
        "def get_ffi() -> FFI:",
        "    ffi = FFI()",
        "    ffi.cdef(CDEF)",
        "    return ffi",
    ])

    if impl_debug:
        lines.extend([
            "",
            "",
            "def describe(value) -> str:",
            '    """Readable dump of a struct or union (or a pointer to one)."""',
            "    ffi = get_ffi()",
            "    ctype = ffi.typeof(value)",
            '    if ctype.kind == "pointer":',
            "        if value == ffi.NULL:",
            '            return "NULL"',
            "        ctype = ctype.item",
            "        value = value[0]",
            '    if ctype.kind not in ("struct", "union"):',
            "        return repr(value)",
            "    fields = []",
            "    for name, _ in ctype.fields or ():",
            "        if name is not None:",
            '            fields.append(f"{name}={getattr(value, name)!r}")',
            '    return f"{ctype.cname} {{ {\', \'.join(fields)} }}"',
        ])

    return "\n".join(lines) + "\n"


def write_atomically(path: Path, text: str) -> None:
    """Write ``text`` through a temporary file renamed over ``path``."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(text)
            os.replace(tmp, path)
        except BaseException:
            os.unlink(tmp)
            raise
    except OSError as e:
        raise BuildFilesystemError(f"Failed to write {path}: {e}", path=path) from e


class BindingGenerator:
    """
    Generates the binding artifact for an installed FFmpeg.

    Example usage:
        generator = BindingGenerator(ChildProcessEnvironment.from_process())
        artifact = generator.generate(Path("out/ffmpeg/install/include"), Path("out"))
        print(artifact)
    """

    def __init__(
        self,
        env: Optional[ChildProcessEnvironment] = None,
        options: Optional[BindingOptions] = None,
        preprocessor: Optional[CPreprocessor] = None,
        whitelist: Optional[HeaderWhitelist] = None
    ):
        self.options = options or BindingOptions()
        env = env or ChildProcessEnvironment.from_process()
        self.preprocessor = preprocessor or CPreprocessor(env, extra_args=self.options.extra_args)
        self.whitelist = whitelist or HeaderWhitelist()

    def parse(self, source: PreprocessedSource, include_dirs: Sequence[Path]) -> ParsedHeaders:
        """
        Extract declarations and constants from preprocessed headers.

        Raises:
            BindingGenerationError: If the code cannot be parsed
        """
        try:
            ast = c_parser.CParser().parse(source.code, filename="<ffbind>")
        except c_parser.ParseError as e:
            raise BindingGenerationError(f"Failed to parse headers: {e}") from e

        collector = DeclarationCollector(include_dirs, self.options.blocklisted_types)
        collected = collector.collect(ast, prefix_enum_constants=self.options.prefix_enum_constants)
        macros = MacroEvaluator(ignored=self.options.ignored_macros).evaluate_all(source.macros)

        # Enumerators are declared by CDEF already, a #define of the same
        # name would be a duplicate
        cdef_macros = {
            name: value
            for name, value in macros.items()
            if isinstance(value, int) and name not in collected.enumerators
        }

        constants: Dict[str, Constant] = dict(macros)
        constants.update(collected.enum_constants)
        return ParsedHeaders(tuple(collected.declarations), constants, cdef_macros)

    def generate(
        self,
        include_dir: Path,
        output_dir: Path,
        extra_include_dirs: Sequence[Path] = ()
    ) -> Path:
        """
        Generate ``<output_dir>/binding.py`` from the headers under ``include_dir``.

        Whitelisted headers missing from ``include_dir`` are skipped with a
        warning.

        Returns:
            Path of the written artifact

        Raises:
            BindingGenerationError: If no header exists or the headers
                cannot be preprocessed or parsed
        """
        headers = self.whitelist.existing(include_dir)
        if not headers:
            raise BindingGenerationError(f"No whitelisted headers found under {include_dir}")

        include_dirs = [include_dir, *extra_include_dirs]
        logging.info(f"Generating binding from {len(headers)} headers in {include_dir}")
        source = self.preprocessor.preprocess(headers, include_dirs)
        parsed = self.parse(source, include_dirs)

        relative = [header.relative_to(include_dir).as_posix() for header in headers]
        text = render_artifact(
            parsed, relative, read_library_version(include_dir), impl_debug=self.options.impl_debug
        )

        artifact = output_dir / ARTIFACT_NAME
        write_atomically(artifact, text)
        logging.info(
            f"Wrote {artifact} ({len(parsed.declarations)} declarations, {len(parsed.constants)} constants)"
        )
        return artifact


def use_prebuilt_binding(source: Path, output_dir: Path, include_dir: Optional[Path] = None) -> Path:
    """
    Copy a prebuilt binding artifact into ``output_dir`` byte for byte.

    The artifact is not validated. When both the artifact and the headers
    record a library version and they differ, a warning is logged.

    Raises:
        BindingGenerationError: If the artifact cannot be copied
    """
    destination = output_dir / ARTIFACT_NAME
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
    except OSError as e:
        raise BindingGenerationError(f"Failed to copy prebuilt binding {source}: {e}") from e

    logging.info(f"Using prebuilt binding {source}")

    if include_dir is not None:
        expected = read_library_version(include_dir)
        actual = read_artifact_version(destination)
        if expected is not None and actual is not None and expected != actual:
            logging.warning(
                f"Prebuilt binding {source} was generated for FFmpeg {actual}, headers are {expected}"
            )

    return destination
