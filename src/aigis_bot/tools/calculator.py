"""
Calculator tool: safe arithmetic over Python's expression grammar.

Everything is evaluated in double precision. Bitwise operators work on the
integral value of their operands and convert back to float.
"""

import ast
import math
import operator
from typing import Any, Callable

import structlog

from .base import BaseTool, ToolResult

logger = structlog.get_logger()

Number = int | float

MAX_SHIFT = 1_024
MAX_EXPRESSION_LENGTH = 1_000

CONSTANTS: dict[str, float] = {
    "e": math.e,
    "pi": math.pi,
    "π": math.pi,
}

FUNCTIONS: dict[str, Callable[[float], Number]] = {
    "abs": abs,
    "ceil": math.ceil,
    "floor": math.floor,
    "round": round,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "sinh": math.sinh,
    "cosh": math.cosh,
    "tanh": math.tanh,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "asinh": math.asinh,
    "acosh": math.acosh,
    "atanh": math.atanh,
    "sqrt": math.sqrt,
    "cbrt": lambda x: math.copysign(abs(x) ** (1 / 3), x),
    "log": math.log10,
    "lg": math.log2,
    "ln": math.log,
    "exp": math.exp,
    "rad": math.radians,
    "deg": math.degrees,
}


def _as_int(value: float) -> int:
    if not value.is_integer():
        raise ValueError(f"bitwise operation on non-integer {value}")
    return int(value)


def _bitwise(op: Callable[[int, int], int]) -> Callable[[float, float], float]:
    return lambda a, b: float(op(_as_int(a), _as_int(b)))


def _shift(op: Callable[[int, int], int]) -> Callable[[float, float], float]:
    def apply(a: float, b: float) -> float:
        if abs(b) > MAX_SHIFT:
            raise ValueError("shift amount too large")
        return float(op(_as_int(a), _as_int(b)))
    return apply


BINARY_OPERATORS: dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: math.pow,
    ast.LShift: _shift(operator.lshift),
    ast.RShift: _shift(operator.rshift),
    ast.BitAnd: _bitwise(operator.and_),
    ast.BitOr: _bitwise(operator.or_),
    ast.BitXor: _bitwise(operator.xor),
}

UNARY_OPERATORS: dict[type, Callable[[float], float]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Invert: lambda a: float(~_as_int(a)),
}


def _normalize(expr: str) -> str:
    # "!" is bitwise not; Python spells it "~"
    return expr.replace("!=", "\0").replace("!", "~").replace("\0", "!=")


def _eval(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval(node.body)

    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return float(node.value)

    if isinstance(node, ast.Name):
        if node.id in CONSTANTS:
            return CONSTANTS[node.id]
        raise ValueError(f"unknown name '{node.id}'")

    if isinstance(node, ast.BinOp) and type(node.op) in BINARY_OPERATORS:
        return BINARY_OPERATORS[type(node.op)](_eval(node.left), _eval(node.right))

    if isinstance(node, ast.UnaryOp) and type(node.op) in UNARY_OPERATORS:
        return UNARY_OPERATORS[type(node.op)](_eval(node.operand))

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
        func = FUNCTIONS.get(node.func.id)
        if func is None:
            raise ValueError(f"unknown function '{node.func.id}'")
        if len(node.args) != 1:
            raise ValueError(f"{node.func.id}() takes exactly one argument")
        return float(func(_eval(node.args[0])))

    raise ValueError(f"unsupported expression: {type(node).__name__}")


def evaluate(expr: str) -> Number:
    """Evaluate an arithmetic expression.

    Integral results are returned as ints, so ``"4/2"`` gives ``2``.

    Raises:
        ValueError: on anything that isn't plain arithmetic, or a result
            outside the range of a double.
    """
    if len(expr) > MAX_EXPRESSION_LENGTH:
        raise ValueError("expression too long")

    try:
        tree = ast.parse(_normalize(expr), mode="eval")
    except SyntaxError as e:
        raise ValueError(f"invalid expression: {e.msg}") from e

    try:
        result = _eval(tree)
    except (ArithmeticError, TypeError) as e:
        raise ValueError(str(e)) from e

    if not math.isfinite(result):
        raise ValueError("result out of range")
    if result.is_integer():
        return int(result)
    return result


class CalculatorTool(BaseTool):
    """Evaluates mathematical expressions."""

    @property
    def name(self) -> str:
        return "calculator"

    @property
    def description(self) -> str:
        return """A calculator that evaluates mathematical expressions.
Supports basic arithmetic, bitwise operations, shifts, and functions like sin, cos, tan, etc.
Do not use this tool for complex logic, programming, or string tasks; it is strictly for math.

infix ops: + - * / // % ** << >> & | ^
unary ops: - (negate), ! (bitwise not)
functions: abs ceil floor round sin cos tan sinh cosh tanh asin acos atan asinh acosh atanh sqrt cbrt log lg ln exp rad deg
constants: e pi

Usage: { "expr": "round(12345 / 543)" }"""

    async def execute(self, expr: str = "", **_: Any) -> ToolResult:
        """Evaluate ``expr``."""
        if not expr:
            return ToolResult.fail("Missing 'expr' parameter")

        try:
            result = evaluate(expr)
        except ValueError as e:
            logger.debug("Calculator error", expr=expr, error=str(e))
            return ToolResult.fail(f"Error evaluating expression '{expr}': {e}")

        return ToolResult.ok({"result": result})
