"""Resolve, validate and execute extracted tool calls."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError

from toolbot.errors import FailureKind, ToolError
from toolbot.extractor import UNPARSED_CALL_NAME, ToolCall
from toolbot.messages import Message, Role
from toolbot.tools import ToolRegistry

logger = logging.getLogger(__name__)


class InvalidArguments(Exception):
    """Arguments did not match the declared parameter schema."""

    def __init__(self, problems: Dict[str, str]) -> None:
        self.problems = problems
        summary = "; ".join(f"{name}: {reason}" for name, reason in problems.items())
        super().__init__(summary)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of one call: handler output on success, a typed failure otherwise."""

    call_id: str
    name: str
    output: Optional[str] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None
    fields: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def content(self) -> str:
        """Text handed back to the model; failures are described, not raised."""
        if self.ok:
            return self.output or ""
        return f"Error ({self.failure.value}): {self.error}"

    def to_message(self) -> Message:
        return Message(
            role=Role.TOOL,
            content=self.content,
            name=self.name or UNPARSED_CALL_NAME,
            tool_call_id=self.call_id,
        )


def _problems(exc: ValidationError) -> Dict[str, str]:
    """Flatten pydantic errors into ``{field path: message}``."""
    problems: Dict[str, str] = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "arguments"
        problems.setdefault(path, error["msg"])
    return problems


def validate_arguments(arguments: Any, args_model: Optional[Type[BaseModel]]) -> Dict[str, Any]:
    """
    Validate and coerce call arguments with the tool's pydantic model.

    Tools registered without a model only get the object check.

    Raises
    ------
    InvalidArguments
        Listing every failing field and why.
    """
    if args_model is None:
        if not isinstance(arguments, dict):
            raise InvalidArguments({"arguments": f"expected an object, got {type(arguments).__name__}"})
        return dict(arguments)
    try:
        return args_model.model_validate(arguments).model_dump()
    except ValidationError as exc:
        raise InvalidArguments(_problems(exc)) from exc


class Dispatcher:
    """Executes calls against a registry; every outcome becomes a DispatchResult."""

    def __init__(self, registry: ToolRegistry, max_workers: int = 4) -> None:
        self.registry = registry
        self.max_workers = max_workers

    def dispatch(self, call: ToolCall) -> DispatchResult:
        """Resolve, validate and run a single call."""
        if not call.name:
            return self._fail(call, FailureKind.PARSE_ERROR, call.error or "could not parse function call")

        spec = self.registry.get(call.name)
        if spec is None:
            return self._fail(call, FailureKind.UNKNOWN_FUNCTION, f"no function named '{call.name}'")

        if not call.ok:
            return self._fail(call, FailureKind.MALFORMED_ARGUMENTS, call.error)

        try:
            arguments = validate_arguments(call.arguments, spec.args_model)
        except InvalidArguments as exc:
            return self._fail(call, FailureKind.INVALID_ARGUMENTS, str(exc), tuple(exc.problems))

        logger.info("Calling function '%s' with %s", call.name, arguments)
        try:
            output = spec.fn(arguments)
        except ToolError as exc:
            return self._fail(call, FailureKind.HANDLER_ERROR, str(exc))
        except Exception as exc:
            logger.exception("Function '%s' raised unexpectedly", call.name)
            return self._fail(call, FailureKind.HANDLER_ERROR, f"{type(exc).__name__}: {exc}")

        text = output if isinstance(output, str) else str(output)
        logger.info("Function '%s' returned: %s", call.name, text)
        return DispatchResult(call_id=call.id, name=call.name, output=text)

    def dispatch_all(self, calls: Sequence[ToolCall], parallel: bool = True) -> List[DispatchResult]:
        """
        Dispatch sibling calls, possibly concurrently.

        Results always come back in the order of ``calls``.
        """
        if not parallel or len(calls) < 2 or self.max_workers < 2:
            return [self.dispatch(call) for call in calls]
        workers = min(self.max_workers, len(calls))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="toolbot-dispatch") as pool:
            return list(pool.map(self.dispatch, calls))

    @staticmethod
    def _fail(
        call: ToolCall,
        kind: FailureKind,
        message: Optional[str],
        fields: Tuple[str, ...] = (),
    ) -> DispatchResult:
        logger.warning("Call to '%s' failed (%s): %s", call.name or "<unparsed>", kind.value, message)
        return DispatchResult(
            call_id=call.id,
            name=call.name,
            failure=kind,
            error=message,
            fields=fields,
        )
