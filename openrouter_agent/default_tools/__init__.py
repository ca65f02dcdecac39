"""
Built-in tools available to every chat session.

get_current_time: current date and time in a named IANA timezone
calculate: basic arithmetic on a sanitized expression
"""

import ast
import operator
import re
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from openrouter_agent.core.tools import Tool, tool

# =============================================================================
# Current time
# =============================================================================


class TimeInput(BaseModel):
    """Input for get_current_time."""

    timezone: str | None = Field(
        default=None, description='Timezone (e.g., "UTC", "Europe/Berlin")'
    )


def format_local_time(dt: datetime) -> str:
    """US-style timestamp, e.g. '3/7/2025, 2:05:09 PM'."""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{dt.month}/{dt.day}/{dt.year}, {hour}:{dt.minute:02d}:{dt.second:02d} {suffix}"


@tool("get_current_time", "Get the current date and time", TimeInput)
def get_current_time(input: TimeInput) -> dict:
    zone_name = input.timezone or "UTC"
    try:
        zone = ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {zone_name}") from e

    return {"time": format_local_time(datetime.now(zone)), "timezone": zone_name}


# =============================================================================
# Calculator
# =============================================================================

_DISALLOWED = re.compile(r"[^0-9+\-*/().\s]")
_MAX_EXPONENT = 1000
# Integer results wider than this are rejected (about 3000 decimal digits)
_MAX_RESULT_BITS = 10_000

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class CalculateInput(BaseModel):
    """Input for calculate."""

    expression: str = Field(description='Math expression (e.g., "2 + 2", "(10/4) + 1")')


def sanitize_expression(expression: str) -> str:
    """Drop every character that isn't a digit, operator, paren, dot or whitespace."""
    return _DISALLOWED.sub("", expression)


def _evaluate_node(node: ast.AST) -> int | float:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)

    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate_node(node.operand))

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate_node(node.left)
        right = _evaluate_node(node.right)
        if isinstance(node.op, ast.Pow):
            if abs(right) > _MAX_EXPONENT:
                raise ValueError(f"Exponent too large: {right}")
            if isinstance(left, int) and abs(left).bit_length() * abs(right) > _MAX_RESULT_BITS:
                raise ValueError("Result too large")
        result = _BINARY_OPS[type(node.op)](left, right)
        if isinstance(result, int) and result.bit_length() > _MAX_RESULT_BITS:
            raise ValueError("Result too large")
        return result

    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


def evaluate_arithmetic(expression: str) -> int | float:
    """
    Evaluate +, -, *, /, ** and parentheses over numeric literals.

    Raises:
        ValueError: empty, unparsable or unsupported expression
        ZeroDivisionError: division by zero
    """
    if not expression.strip():
        raise ValueError("Empty expression")
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression.strip()}") from e

    result = _evaluate_node(tree)
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


@tool("calculate", "Perform basic mathematical calculations", CalculateInput)
def calculate(input: CalculateInput) -> dict:
    sanitized = sanitize_expression(input.expression)
    return {
        "expression": input.expression,
        "sanitized": sanitized,
        "result": evaluate_arithmetic(sanitized),
    }


def default_tools() -> list[Tool]:
    """The tools a new chat session starts with."""
    return [get_current_time, calculate]
