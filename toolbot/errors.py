"""Exception taxonomy for the agent loop."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from toolbot.agent import AgentState


class FailureKind(str, Enum):
    """Dispatch-level failures. These are reported back to the model, never raised."""

    PARSE_ERROR = "ParseError"
    UNKNOWN_FUNCTION = "UnknownFunction"
    MALFORMED_ARGUMENTS = "MalformedArguments"
    INVALID_ARGUMENTS = "InvalidArguments"
    HANDLER_ERROR = "HandlerError"


class ToolError(Exception):
    """Raised by a tool handler when its input fails a domain precondition."""


class AgentError(Exception):
    """Base class for failures that terminate a conversation run."""

    def __init__(self, message: str, state: Optional["AgentState"] = None) -> None:
        super().__init__(message)
        self.state = state


class TransportError(AgentError):
    """The model could not be reached or returned an unusable response."""


class LoopBoundExceeded(AgentError):
    """The model kept requesting calls past the configured round limit."""

    def __init__(self, max_rounds: int, state: Optional["AgentState"] = None) -> None:
        super().__init__(
            f"Model still requested tool calls after {max_rounds} round(s); giving up.",
            state=state,
        )
        self.max_rounds = max_rounds
