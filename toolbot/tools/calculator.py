"""Basic arithmetic tool exposed to the model as ``calculate``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Literal

from pydantic import BaseModel, Field

from toolbot.errors import ToolError

if TYPE_CHECKING:  # pragma: no cover
    from toolbot.tools import ToolRegistry

logger = logging.getLogger(__name__)

CALCULATE_NAME = "calculate"
CALCULATE_DESCRIPTION = "Calculator tool that performs basic arithmetic operations"


class CalculateArgs(BaseModel):
    """Arguments accepted by ``calculate``."""

    a: float = Field(description="First number")
    b: float = Field(description="Second number")
    operation: Literal["+", "-", "*", "/"] = Field(description="Operation to perform (+, -, *, /)")


def _format_number(value: float) -> str:
    """Render integral results without a trailing '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def calculate(a: float, b: float, operation: str) -> str:
    """
    Apply ``operation`` to ``a`` and ``b``.

    Raises
    ------
    ToolError
        On division by zero or an unsupported operation.
    """
    if operation == "+":
        result = a + b
    elif operation == "-":
        result = a - b
    elif operation == "*":
        result = a * b
    elif operation == "/":
        if b == 0:
            raise ToolError("division by zero")
        result = a / b
    else:
        raise ToolError(f"unknown operation '{operation}'")
    return _format_number(result)


def _calculate_tool(args: Dict[str, Any]) -> str:
    output = calculate(args["a"], args["b"], args["operation"])
    logger.info("calculate %s %s %s = %s", args["a"], args["operation"], args["b"], output)
    return output


def register_calculator(registry: "ToolRegistry") -> None:
    registry.register(
        CALCULATE_NAME,
        _calculate_tool,
        description=CALCULATE_DESCRIPTION,
        args_model=CalculateArgs,
    )
