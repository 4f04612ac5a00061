"""
Evaluation of object-like macros into Python constants.

Only macros whose body is a constant expression are turned into
constants: integer, floating point, character and string literals
combined with arithmetic, bitwise, logical and comparison operators and
references to macros evaluated before them. Anything else (casts, calls,
type names, statement macros) is skipped silently.

The body is tokenized as C, rewritten into an equivalent Python
expression and evaluated by walking its ``ast`` with a fixed set of
allowed node types, so no code is ever executed.
"""

import ast
import logging
import operator
import re
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .preprocessor import MacroDefinition


Constant = Union[int, float, str]

TOKEN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<string>"(?:[^"\\\n]|\\.)*")
  | (?P<char>'(?:[^'\\\n]|\\.)+')
  | (?P<float>(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?[fFlL]?|\d+[eE][+-]?\d+[fFlL]?)
  | (?P<int>(?:0[xX][0-9a-fA-F]+|0[bB][01]+|\d+)[uUlL]*)
  | (?P<name>[A-Za-z_]\w*)
  | (?P<op><<|>>|<=|>=|==|!=|&&|\|\||[-+*/%&|^~!<>()])
    """,
    re.VERBOSE,
)

PYTHON_OPERATORS = {
    "&&": " and ",
    "||": " or ",
}

# Prefix operators that may sit between ! and its operand
PREFIX_OPERATORS = ("!", "-", "+", "~")

BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.BitAnd: operator.and_,
}

UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Invert: operator.invert,
    ast.Not: lambda value: int(not value),
}

COMPARE_OPERATORS = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
}


class NotConstant(Exception):
    """The expression is not a constant expression."""


def parse_int_literal(text: str) -> int:
    digits = text.rstrip("uUlL")
    if digits[:2] in ("0x", "0X"):
        return int(digits, 16)
    if digits[:2] in ("0b", "0B"):
        return int(digits, 2)
    if len(digits) > 1 and digits.startswith("0"):
        return int(digits, 8)
    return int(digits)


def parse_char_literal(text: str) -> int:
    value = ast.literal_eval(text)
    if len(value) != 1:
        raise NotConstant(text)
    return ord(value)


def c_div(left, right):
    if isinstance(left, int) and isinstance(right, int):
        if right == 0:
            raise NotConstant("division by zero")
        quotient = abs(left) // abs(right)
        return quotient if (left < 0) == (right < 0) else -quotient
    return left / right


def c_mod(left, right):
    if not (isinstance(left, int) and isinstance(right, int)) or right == 0:
        raise NotConstant("invalid modulo")
    return left - right * c_div(left, right)


def to_python(body: str, known: Mapping[str, Constant]) -> str:
    """Rewrite a C constant expression as Python source.

    Raises:
        NotConstant: On tokens that cannot be part of a constant expression
    """
    parts: List[str] = []
    strings: List[str] = []
    pos = 0

    while pos < len(body):
        match = TOKEN.match(body, pos)
        if match is None:
            raise NotConstant(body[pos:])
        pos = match.end()
        kind = match.lastgroup
        text = match.group()

        if kind == "space":
            continue
        if kind == "string":
            # Adjacent string literals concatenate
            strings.append(ast.literal_eval(text))
            continue
        if strings:
            parts.append(repr("".join(strings)))
            strings = []

        if kind == "float":
            parts.append(repr(float(text.rstrip("fFlL"))))
        elif kind == "int":
            parts.append(repr(parse_int_literal(text)))
        elif kind == "char":
            parts.append(repr(parse_char_literal(text)))
        elif kind == "name":
            if text not in known:
                raise NotConstant(text)
            parts.append(f"({known[text]!r})")
        else:
            parts.append(PYTHON_OPERATORS.get(text, text))

    if strings:
        parts.append(repr("".join(strings)))

    return "".join(_logical_not(parts))


def _operand_end(parts: List[str], start: int) -> int:
    pos = start
    while pos < len(parts) and parts[pos] in PREFIX_OPERATORS:
        pos += 1
    if pos >= len(parts):
        raise NotConstant("! without operand")
    if parts[pos] != "(":
        return pos + 1
    depth = 0
    for end in range(pos, len(parts)):
        if parts[end] == "(":
            depth += 1
        elif parts[end] == ")":
            depth -= 1
            if depth == 0:
                return end + 1
    raise NotConstant("unbalanced parentheses")


def _logical_not(parts: List[str]) -> List[str]:
    """Rewrite C's ! as a parenthesized Python ``not``.

    Python's ``not`` binds looser than arithmetic and comparisons, C's ``!``
    binds to the operand right after it, so ``!a + 1`` becomes
    ``(not a)+1``.
    """
    result: List[str] = []
    pos = 0
    while pos < len(parts):
        if parts[pos] != "!":
            result.append(parts[pos])
            pos += 1
            continue
        end = _operand_end(parts, pos + 1)
        result.append("(not " + "".join(_logical_not(parts[pos + 1:end])) + ")")
        pos = end
    return result


def _evaluate(node: ast.AST):
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float, str)):
        return node.value
    if isinstance(node, ast.BinOp):
        left, right = _evaluate(node.left), _evaluate(node.right)
        if isinstance(left, str) or isinstance(right, str):
            raise NotConstant("string arithmetic")
        if isinstance(node.op, ast.Div):
            return c_div(left, right)
        if isinstance(node.op, ast.Mod):
            return c_mod(left, right)
        func = BINARY_OPERATORS.get(type(node.op))
        if func is None:
            raise NotConstant(type(node.op).__name__)
        if func in (operator.lshift, operator.rshift, operator.or_, operator.xor, operator.and_):
            if not (isinstance(left, int) and isinstance(right, int)):
                raise NotConstant("bitwise operator on float")
            if func in (operator.lshift, operator.rshift) and right < 0:
                raise NotConstant("negative shift")
        return func(left, right)
    if isinstance(node, ast.UnaryOp):
        operand = _evaluate(node.operand)
        func = UNARY_OPERATORS.get(type(node.op))
        if func is None or isinstance(operand, str):
            raise NotConstant(type(node.op).__name__)
        if isinstance(node.op, ast.Invert) and not isinstance(operand, int):
            raise NotConstant("~ on float")
        return func(operand)
    if isinstance(node, ast.BoolOp):
        values = [_evaluate(value) for value in node.values]
        if isinstance(node.op, ast.And):
            return int(all(values))
        return int(any(values))
    if isinstance(node, ast.Compare):
        # C comparisons associate left to right: a < b < c is (a < b) < c
        left = _evaluate(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            func = COMPARE_OPERATORS.get(type(op))
            if func is None:
                raise NotConstant(type(op).__name__)
            left = int(func(left, _evaluate(comparator)))
        return left
    raise NotConstant(type(node).__name__)


def evaluate(body: str, known: Optional[Mapping[str, Constant]] = None) -> Optional[Constant]:
    """
    Evaluate a macro body.

    Args:
        body: Macro replacement text
        known: Previously evaluated macros

    Returns:
        The constant value, or None when the body is not a constant expression
    """
    if not body.strip():
        return None
    try:
        source = to_python(body, known or {})
        value = _evaluate(ast.parse(source.strip(), mode="eval"))
    except (NotConstant, SyntaxError, ValueError, OverflowError, RecursionError):
        return None
    if isinstance(value, bool):
        return int(value)
    return value


class MacroEvaluator:
    """
    Turns macro definitions into named constants.

    Example usage:
        evaluator = MacroEvaluator(ignored={"FP_NAN"})
        constants = evaluator.evaluate_all(source.macros)
        print(constants["LIBAVUTIL_VERSION_MAJOR"])
    """

    def __init__(self, ignored: Iterable[str] = ()):
        self.ignored = frozenset(ignored)

    def evaluate_all(self, macros: Iterable[MacroDefinition]) -> Dict[str, Constant]:
        """Evaluate macros in definition order.

        Ignored macros are dropped before evaluation, so later macros
        referring to them are not constants either.
        """
        constants: Dict[str, Constant] = {}
        for macro in macros:
            if macro.name in self.ignored:
                logging.debug(f"Ignoring macro {macro.name}")
                continue
            value = evaluate(macro.body, constants)
            if value is not None:
                constants[macro.name] = value
        return constants
