import json
import types
from typing import Any, Dict, List, Optional

import pytest
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from toolbot.errors import TransportError
from toolbot.transport import ModelReply


def make_tool_call(call_id: str, name: str, arguments: Any) -> types.SimpleNamespace:
    """Build an object shaped like groq's ChatCompletionMessageToolCall."""
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return types.SimpleNamespace(
        id=call_id,
        type="function",
        function=types.SimpleNamespace(name=name, arguments=arguments),
    )


class DummyChoice:
    def __init__(self, content: Optional[str], tool_calls: Optional[list] = None, finish_reason: str = "stop"):
        self.message = types.SimpleNamespace(content=content, tool_calls=tool_calls)
        self.finish_reason = finish_reason


class DummyCompletion:
    def __init__(self, content: Optional[str], tool_calls: Optional[list] = None):
        finish = "tool_calls" if tool_calls else "stop"
        self.choices = [DummyChoice(content, tool_calls, finish)]


class DummyGroq:
    """
    Minimal mock for groq.Groq that supports:
    client.chat.completions.create(...)

    Each entry of ``responses`` is returned in turn; exceptions are raised.
    """

    def __init__(self, *responses: Any):
        self._responses = list(responses)
        self.requests: List[Dict[str, Any]] = []
        self.chat = types.SimpleNamespace(
            completions=types.SimpleNamespace(create=self._create)
        )

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return DummyCompletion(response)
        return response


class ScriptedTransport:
    """Transport double replaying canned replies and recording every request."""

    def __init__(self, *replies: Any):
        self._replies = list(replies)
        self.requests: List[Dict[str, Any]] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def complete(self, messages, tools) -> ModelReply:
        self.requests.append({"messages": list(messages), "tools": list(tools)})
        if not self._replies:
            raise AssertionError("transport called more often than scripted")
        reply = self._replies.pop(0)
        if isinstance(reply, TransportError):
            raise reply
        if isinstance(reply, str):
            return ModelReply(content=reply)
        return reply


def structured(*calls: Dict[str, Any], content: str = "") -> ModelReply:
    """Reply carrying structured tool calls given as {id, name, arguments} dicts."""
    entries = []
    for call in calls:
        arguments = call["arguments"]
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        entries.append({"id": call["id"], "name": call["name"], "arguments": arguments})
    return ModelReply(content=content, tool_calls=entries, finish_reason="tool_calls")


@pytest.fixture(autouse=True)
def set_env(monkeypatch):
    """
    Automatically set the model env vars for all tests.
    """
    monkeypatch.setenv("GROQ_MODEL", "dummy-model")
    monkeypatch.setenv("GROQ_API_KEY", "test-key")
    monkeypatch.delenv("TOOLBOT_MAX_ROUNDS", raising=False)
    yield
