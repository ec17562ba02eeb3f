"""Agent loop driving model requests, tool dispatch and result re-submission."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from toolbot.config import DEFAULT_MAX_ROUNDS, DEFAULT_SYSTEM_PROMPT
from toolbot.dispatcher import Dispatcher
from toolbot.errors import LoopBoundExceeded, TransportError
from toolbot.extractor import ToolCall, extract_calls, strip_calls
from toolbot.messages import Conversation, Message, Role, system, user
from toolbot.tools import ToolRegistry
from toolbot.transport import ModelReply, Transport

logger = logging.getLogger(__name__)


class Status(str, Enum):
    AWAITING_MODEL = "AwaitingModel"
    HAS_CALLS = "HasCalls"
    FINAL = "Final"
    ABORTED = "Aborted"


@dataclass(slots=True)
class AgentState:
    """Mutable state tracked while the agent loop executes."""

    conversation: Conversation
    status: Status = Status.AWAITING_MODEL
    rounds: int = 0
    trace: List[Dict[str, Any]] = field(default_factory=list)

    def transition(self, status: Status) -> None:
        logger.debug("%s -> %s (round %d)", self.status.value, status.value, self.rounds)
        self.status = status


@dataclass(frozen=True, slots=True)
class RunResult:
    answer: str
    state: AgentState

    @property
    def rounds(self) -> int:
        return self.state.rounds

    def trace_line(self) -> str:
        """Render the tools used, in call order."""
        tools = [entry["tool"] for entry in self.state.trace]
        if not tools:
            return "Trace: none"
        return "Trace: " + " -> ".join(tools)


class Agent:
    """
    Conversation driver: AwaitingModel -> HasCalls -> AwaitingModel ... -> Final.

    Every reply that requests calls costs one round. Once ``max_rounds`` rounds
    have been spent, a reply that still requests calls aborts the run with
    ``LoopBoundExceeded`` and the model is not contacted again.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        transport: Transport,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT,
        parallel: bool = True,
        max_workers: int = 4,
    ) -> None:
        if max_rounds < 0:
            raise ValueError("max_rounds must be zero or positive")
        self.registry = registry
        self.transport = transport
        self.max_rounds = max_rounds
        self.system_prompt = system_prompt
        self.parallel = parallel
        self.dispatcher = Dispatcher(registry, max_workers=max_workers)

    # --------------------------------------------------------------------- run
    def run(self, user_goal: str) -> RunResult:
        """
        Drive one user prompt to a final answer.

        Raises
        ------
        TransportError
            When the model cannot be reached.
        LoopBoundExceeded
            When the model keeps requesting calls past ``max_rounds``.
        """
        state = AgentState(conversation=self._start_conversation(user_goal))
        tools = self.registry.declarations()

        while True:
            reply = self._request(state, tools)
            calls = extract_calls(reply.content, reply.tool_calls)

            if not calls:
                state.conversation.append(Message(role=Role.ASSISTANT, content=reply.content))
                state.transition(Status.FINAL)
                return RunResult(answer=reply.content, state=state)

            if state.rounds >= self.max_rounds:
                state.transition(Status.ABORTED)
                raise LoopBoundExceeded(self.max_rounds, state=state)

            state.transition(Status.HAS_CALLS)
            self._handle_calls(state, reply, calls)
            state.rounds += 1
            state.transition(Status.AWAITING_MODEL)

    # ------------------------------------------------------------- internals
    def _start_conversation(self, user_goal: str) -> Conversation:
        messages = [system(self.system_prompt)] if self.system_prompt else []
        messages.append(user(user_goal))
        return Conversation(messages)

    def _request(self, state: AgentState, tools: List[Dict[str, Any]]) -> ModelReply:
        try:
            return self.transport.complete(state.conversation.to_payload(), tools)
        except TransportError as exc:
            exc.state = state
            state.transition(Status.ABORTED)
            raise

    def _handle_calls(self, state: AgentState, reply: ModelReply, calls: List[ToolCall]) -> None:
        """Record the request, dispatch it, then append all results as one batch."""
        prose = strip_calls(reply.content)
        if prose:
            logger.info("Model said alongside its calls: %s", prose)
        for call in calls:
            logger.info("Model requested function '%s' with %s", call.name, call.raw)

        state.conversation.append(
            Message(
                role=Role.ASSISTANT,
                content=reply.content,
                tool_calls=tuple(call.to_wire() for call in calls),
            )
        )

        results = self.dispatcher.dispatch_all(calls, parallel=self.parallel)
        state.conversation.extend(result.to_message() for result in results)

        for call, result in zip(calls, results):
            state.trace.append(
                {
                    "round": state.rounds + 1,
                    "tool": call.name or "<unparsed>",
                    "args": call.arguments,
                    "ok": result.ok,
                }
            )
