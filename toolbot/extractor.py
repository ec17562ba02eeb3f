"""
Extraction of function-call requests from a model reply.

A reply can carry calls in two places:

- the structured ``tool_calls`` field of the chat completion, and
- the message text, where Llama-family models write calls inline as
  ``<function=NAME{...}>`` or ``<function=NAME>{...}</function>``.

Both are turned into ``ToolCall`` values. A malformed call yields a ToolCall
with ``error`` set instead of aborting extraction, so the other calls of the
same reply are still dispatched and the failure can be reported back.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

CALL_MARKER = "<function="
CALL_CLOSER = "</function>"
UNPARSED_CALL_NAME = "unparsed_call"

_NAME_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-.")


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A model-issued request naming a function and its raw arguments."""

    id: str
    name: str
    arguments: Any = None
    raw: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_wire(self) -> Dict[str, Any]:
        """
        Tool-call metadata attached to the assistant message that issued it.

        Failed calls are echoed with a placeholder name and ``{}`` arguments;
        their error reaches the model through the tool result.
        """
        arguments = json.dumps(self.arguments) if self.ok else "{}"
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name or UNPARSED_CALL_NAME, "arguments": arguments},
        }


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


def _decode_arguments(blob: Any) -> Tuple[Any, Optional[str]]:
    """Return (value, error). Already-decoded values pass through untouched."""
    if not isinstance(blob, str):
        return blob, None
    if not blob.strip():
        return {}, None
    try:
        return json.loads(blob), None
    except ValueError as exc:
        reason = getattr(exc, "msg", str(exc))
        return None, f"invalid JSON arguments: {reason}"


def _match_object(text: str, start: int) -> int:
    """
    Return the index just past the JSON object opening at ``text[start]``.

    Braces inside JSON strings are ignored. Returns -1 when the object is
    never closed.
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return -1


def _skip_spaces(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


class _TextScanner:
    """Single pass over reply text collecting inline calls and the prose around them."""

    def __init__(self, text: str, id_factory: Callable[[], str]) -> None:
        self.text = text
        self.id_factory = id_factory
        self.calls: List[ToolCall] = []
        self.prose: List[str] = []

    def scan(self) -> "_TextScanner":
        text = self.text
        pos = 0
        while True:
            start = text.find(CALL_MARKER, pos)
            if start == -1:
                self.prose.append(text[pos:])
                return self
            self.prose.append(text[pos:start])
            pos = self._read_call(start)

    def _fail(self, start: int, end: int, name: str, reason: str) -> int:
        self.calls.append(
            ToolCall(id=self.id_factory(), name=name, raw=self.text[start:end], error=reason)
        )
        return end

    def _read_call(self, start: int) -> int:
        """Parse one call beginning at ``start``; return where scanning resumes."""
        text = self.text
        index = start + len(CALL_MARKER)
        name_end = index
        while name_end < len(text) and text[name_end] in _NAME_CHARS:
            name_end += 1
        name = text[index:name_end]
        if not name:
            return self._fail(start, name_end, "", "missing function name after '<function='")

        index = name_end
        closer = ">"
        if text.startswith(">", index):
            closer = CALL_CLOSER
            index += 1
        index = _skip_spaces(text, index)

        if index >= len(text) or text[index] != "{":
            return self._fail(start, index, name, f"expected '{{' to open the arguments of '{name}'")

        end = _match_object(text, index)
        if end == -1:
            # Resume right after the opening brace so later calls are still found.
            self._fail(start, len(text), name, f"unterminated argument object for '{name}'")
            return index + 1

        blob = text[index:end]
        after = _skip_spaces(text, end)
        if text.startswith(closer, after):
            end = after + len(closer)

        arguments, error = _decode_arguments(blob)
        self.calls.append(
            ToolCall(id=self.id_factory(), name=name, arguments=arguments, raw=blob, error=error)
        )
        return end


def _structured_call(entry: Dict[str, Any], id_factory: Callable[[], str]) -> ToolCall:
    """Normalise one entry of a reply's structured ``tool_calls`` field."""
    function = entry.get("function") or {}
    name = entry.get("name", function.get("name")) or ""
    blob = entry.get("arguments", function.get("arguments"))
    call_id = entry.get("id") or id_factory()
    if not name:
        return ToolCall(id=call_id, name="", raw=str(blob or ""), error="tool call has no function name")
    arguments, error = _decode_arguments(blob)
    raw = blob if isinstance(blob, str) else json.dumps(blob)
    return ToolCall(id=call_id, name=name, arguments=arguments, raw=raw, error=error)


def extract_calls(
    content: Optional[str],
    tool_calls: Optional[Iterable[Dict[str, Any]]] = None,
    id_factory: Optional[Callable[[], str]] = None,
) -> List[ToolCall]:
    """
    Collect every call requested by a reply, preserving order.

    Structured calls come first, in field order, followed by inline calls in the
    order they appear in ``content``. An empty list means the reply is a final
    answer.
    """
    make_id = id_factory or _new_call_id
    calls = [_structured_call(entry, make_id) for entry in (tool_calls or [])]
    if content:
        calls.extend(_TextScanner(content, make_id).scan().calls)
    return calls


def strip_calls(content: Optional[str]) -> str:
    """Return the reply text with inline call markup removed."""
    if not content:
        return ""
    scanner = _TextScanner(content, _new_call_id).scan()
    return "".join(scanner.prose).strip()
