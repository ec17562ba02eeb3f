"""Groq chat-completions transport for the conversation driver."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import groq
from groq import Groq

from toolbot.config import get_model
from toolbot.errors import TransportError

logger = logging.getLogger(__name__)

TOOL_USE_FAILED = "tool_use_failed"


@dataclass(frozen=True, slots=True)
class ModelReply:
    """Assistant text plus any structured tool-call requests."""

    content: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    finish_reason: Optional[str] = None


class Transport(Protocol):
    """Anything able to send the history and tool declarations to a model."""

    def complete(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> ModelReply:
        ...


def _build_groq(client: Optional[Groq]) -> Groq:
    """Return a Groq client (or reuse injected mock)."""
    if client is not None:
        return client
    return Groq()


def _failed_generation(exc: groq.APIStatusError) -> Optional[str]:
    """
    Pull the raw model output out of a ``tool_use_failed`` rejection.

    Groq answers 400 when a Llama model writes ``<function=...>`` text instead of a
    structured call; the rejected text is returned under ``failed_generation``.
    """
    body = exc.body
    if not isinstance(body, dict):
        return None
    error = body.get("error", body)
    if not isinstance(error, dict) or error.get("code") != TOOL_USE_FAILED:
        return None
    generation = error.get("failed_generation")
    return generation if isinstance(generation, str) else None


def _structured_calls(message: Any) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []
    for entry in getattr(message, "tool_calls", None) or []:
        function = entry.function
        calls.append({"id": entry.id, "name": function.name, "arguments": function.arguments})
    return calls


class GroqTransport:
    """
    Send chat requests through the Groq SDK.

    Parameters
    ----------
    client : Optional[Groq]
        Injected Groq client for testability. Built if not provided.
    model : Optional[str]
        Model override; falls back to GROQ_MODEL or the default model.
    tool_choice : str
        Forwarded as-is when tools are declared.
    temperature : Optional[float]
        Sampling temperature; omitted from the request when None.
    """

    def __init__(
        self,
        client: Optional[Groq] = None,
        model: Optional[str] = None,
        tool_choice: str = "auto",
        temperature: Optional[float] = None,
    ) -> None:
        self.client = _build_groq(client)
        self.model = model or get_model()
        self.tool_choice = tool_choice
        self.temperature = temperature

    def complete(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> ModelReply:
        request: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            request["tools"] = tools
            request["tool_choice"] = self.tool_choice
        if self.temperature is not None:
            request["temperature"] = self.temperature

        logger.debug("Sending %d message(s) to %s", len(messages), self.model)
        try:
            completion = self.client.chat.completions.create(**request)
        except groq.APIStatusError as exc:
            generation = _failed_generation(exc)
            if generation is None:
                raise TransportError(f"Groq request failed: {exc}") from exc
            logger.info("Recovering inline call text from rejected generation")
            return ModelReply(content=generation, finish_reason=TOOL_USE_FAILED)
        except groq.GroqError as exc:
            raise TransportError(f"Groq request failed: {exc}") from exc

        choices = getattr(completion, "choices", None) or []
        if not choices:
            raise TransportError("Groq returned no choices.")
        choice = choices[0]
        message = getattr(choice, "message", None)
        finish_reason = getattr(choice, "finish_reason", None)
        if message is None:
            return ModelReply(content=getattr(choice, "text", None) or "", finish_reason=finish_reason)
        return ModelReply(
            content=message.content or "",
            tool_calls=_structured_calls(message),
            finish_reason=finish_reason,
        )
