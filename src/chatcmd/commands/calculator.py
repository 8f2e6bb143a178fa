from __future__ import annotations

import math
import operator
import re
from collections.abc import Callable

from ..arguments import ParsedArguments
from ..context import CommandContext, function_command
from ..model import ArgumentSpec, CommandSpec, Number, Word

FIRST_NUMBER = 0
OPERATION_SIGN = 1
SECOND_NUMBER = 2

_SIGN_PATTERN = re.compile(r"[+\-*/^]")

_OPERATIONS: dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "^": math.pow,
}


def _is_sign(value: str) -> bool:
    return _SIGN_PATTERN.fullmatch(value) is not None


CALCULATOR_SPEC = CommandSpec(
    names=("calculate", "calculator", "calc"),
    description="Performs basic operations on 2 numbers",
    verbose_description=(
        "Performs basic operations on 2 numbers.\nSupported operations: + - * / ^"
    ),
    user_cooldown=5,
    arguments=(
        ArgumentSpec(
            id=FIRST_NUMBER,
            name="first number",
            kind=Number(),
            description="Simple decimal number",
        ),
        ArgumentSpec(
            id=OPERATION_SIGN,
            name="operation sign",
            kind=Word(checks=(_is_sign,)),
            description="Supported operations: + - * / ^",
        ),
        ArgumentSpec(
            id=SECOND_NUMBER,
            name="second number",
            kind=Number(),
            description="Simple decimal number",
        ),
    ),
)


def format_number(value: float) -> str:
    """Drop the fractional part of whole numbers: ``3.0`` reads as ``3``."""
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def calculate(ctx: CommandContext, args: ParsedArguments) -> str:
    first = args.number(FIRST_NUMBER)
    second = args.number(SECOND_NUMBER)
    sign = args.text(OPERATION_SIGN) or ""
    operation = _OPERATIONS[sign]
    try:
        result = operation(first, second)
    except ZeroDivisionError:
        return "Cannot divide by zero."
    except OverflowError:
        return "The result is too large."
    except ValueError:
        return "The result is not a real number."
    return f"{format_number(first)} {sign} {format_number(second)} = {format_number(result)}"


calculator = function_command(calculate)

CALCULATOR = (CALCULATOR_SPEC, calculator)
