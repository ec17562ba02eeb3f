import logging
import time
from typing import Any, Dict, List

import pytest

from toolbot.agent import Agent, Status
from toolbot.errors import LoopBoundExceeded, TransportError
from toolbot.messages import Role
from toolbot.tools import ToolRegistry, build_tool_registry
from tests.conftest import ScriptedTransport, structured


def make_agent(transport, registry=None, **kwargs) -> Agent:
    return Agent(registry=registry or build_tool_registry(), transport=transport, **kwargs)


def tool_messages(result) -> List[Any]:
    return [m for m in result.state.conversation.messages if m.role is Role.TOOL]


def test_reply_without_calls_is_final():
    transport = ScriptedTransport("Hello there!")
    result = make_agent(transport).run("hi")

    assert result.answer == "Hello there!"
    assert result.state.status is Status.FINAL
    assert result.rounds == 0
    assert transport.calls == 1
    assert result.trace_line() == "Trace: none"

    request = transport.requests[0]
    assert [m["role"] for m in request["messages"]] == ["system", "user"]
    assert request["messages"][1]["content"] == "hi"
    assert request["tools"][0]["function"]["name"] == "calculate"


def test_multiplication_then_final_answer():
    transport = ScriptedTransport(
        structured({"id": "tc_1", "name": "calculate", "arguments": {"a": 6, "b": 7, "operation": "*"}}),
        "6 times 7 is 42.",
    )
    result = make_agent(transport).run("What is 6 times 7?")

    assert result.answer == "6 times 7 is 42."
    assert result.state.status is Status.FINAL
    assert result.rounds == 1
    [tool] = tool_messages(result)
    assert tool.content == "42"
    assert tool.tool_call_id == "tc_1"

    second_request = transport.requests[1]["messages"]
    assert [m["role"] for m in second_request] == ["system", "user", "assistant", "tool"]
    assert second_request[2]["tool_calls"][0]["id"] == "tc_1"
    assert second_request[3] == {"role": "tool", "content": "42", "name": "calculate", "tool_call_id": "tc_1"}
    assert result.trace_line() == "Trace: calculate"


def test_division_by_zero_is_fed_back_and_run_continues():
    transport = ScriptedTransport(
        '<function=calculate{"a": 10, "b": 0, "operation": "/"}>',
        "You cannot divide by zero.",
    )
    result = make_agent(transport).run("10 / 0?")

    assert result.answer == "You cannot divide by zero."
    assert transport.calls == 2
    [tool] = tool_messages(result)
    assert tool.content == "Error (HandlerError): division by zero"
    assert result.state.trace == [
        {"round": 1, "tool": "calculate", "args": {"a": 10, "b": 0, "operation": "/"}, "ok": False}
    ]


def test_n_calls_produce_n_tool_messages_in_call_order():
    def slow(args: Dict[str, Any]) -> str:
        time.sleep(args["delay"])
        return args["label"]

    registry = ToolRegistry()
    registry.register("slow", slow)
    registry.register("fast", lambda args: "fast-result")
    transport = ScriptedTransport(
        structured(
            {"id": "a", "name": "slow", "arguments": {"delay": 0.05, "label": "slow-result"}},
            {"id": "b", "name": "fast", "arguments": {}},
        ),
        "done",
    )

    result = make_agent(transport, registry=registry, system_prompt=None).run("go")

    tools = tool_messages(result)
    assert [m.tool_call_id for m in tools] == ["a", "b"]
    assert [m.content for m in tools] == ["slow-result", "fast-result"]


def test_dispatch_failures_do_not_abort_the_run():
    transport = ScriptedTransport(
        structured(
            {"id": "1", "name": "nope", "arguments": {}},
            {"id": "2", "name": "calculate", "arguments": "{oops"},
            {"id": "3", "name": "calculate", "arguments": {"a": 1}},
        ),
        "sorry",
    )
    result = make_agent(transport).run("q")

    contents = [m.content for m in tool_messages(result)]
    assert contents[0].startswith("Error (UnknownFunction)")
    assert contents[1].startswith("Error (MalformedArguments)")
    assert contents[2].startswith("Error (InvalidArguments)")
    assert result.state.status is Status.FINAL


def test_round_counter_increments_per_cycle():
    call = '<function=calculate{"a": 1, "b": 1, "operation": "+"}>'
    transport = ScriptedTransport(call, call, call, "two")
    result = make_agent(transport, max_rounds=5).run("q")

    assert result.rounds == 3
    assert [entry["round"] for entry in result.state.trace] == [1, 2, 3]
    assert transport.calls == 4


def test_loop_bound_aborts_without_further_requests():
    call = '<function=calculate{"a": 1, "b": 1, "operation": "+"}>'
    transport = ScriptedTransport(call, call, call, "never sent")

    with pytest.raises(LoopBoundExceeded) as excinfo:
        make_agent(transport, max_rounds=2).run("q")

    assert transport.calls == 3
    state = excinfo.value.state
    assert state.status is Status.ABORTED
    assert state.rounds == 2
    assert excinfo.value.max_rounds == 2
    assert len([m for m in state.conversation.messages if m.role is Role.TOOL]) == 2


def test_zero_rounds_allows_only_plain_answers():
    transport = ScriptedTransport('<function=calculate{"a": 1, "b": 1, "operation": "+"}>')

    with pytest.raises(LoopBoundExceeded):
        make_agent(transport, max_rounds=0).run("q")
    assert transport.calls == 1


def test_transport_error_propagates_and_aborts():
    transport = ScriptedTransport(TransportError("network down"))

    with pytest.raises(TransportError) as excinfo:
        make_agent(transport).run("q")

    assert excinfo.value.state.status is Status.ABORTED


def test_conversation_is_append_only_between_rounds():
    transport = ScriptedTransport(
        structured({"id": "tc_1", "name": "calculate", "arguments": {"a": 2, "b": 2, "operation": "+"}}),
        "four",
    )
    make_agent(transport).run("2+2")

    first, second = (request["messages"] for request in transport.requests)
    assert second[: len(first)] == first


def test_negative_max_rounds_rejected():
    with pytest.raises(ValueError):
        make_agent(ScriptedTransport(), max_rounds=-1)


def test_unparsed_call_is_echoed_with_placeholder_name():
    transport = ScriptedTransport('<function={"a": 1}>', "Let me try again.")
    result = make_agent(transport).run("q")

    assert result.state.status is Status.FINAL
    second_request = transport.requests[1]["messages"]
    assistant, tool = second_request[2], second_request[3]
    wire = assistant["tool_calls"][0]
    assert wire["function"] == {"name": "unparsed_call", "arguments": "{}"}
    assert tool["role"] == "tool"
    assert tool["tool_call_id"] == wire["id"]
    assert tool["name"] == "unparsed_call"
    assert tool["content"].startswith("Error (ParseError)")


def test_prose_around_calls_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="toolbot.agent")
    transport = ScriptedTransport(
        'Let me compute that. <function=calculate{"a": 2, "b": 2, "operation": "+"}>',
        "4",
    )
    make_agent(transport).run("2+2")

    assert "Model said alongside its calls: Let me compute that." in caplog.text
