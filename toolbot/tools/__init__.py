"""Tool specifications and registry utilities for the agent runtime."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Protocol, Type

from pydantic import BaseModel


class ToolFn(Protocol):
    """Callable signature every tool implementation must follow."""

    def __call__(self, args: Dict[str, Any]) -> str:
        ...


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """
    Metadata wrapper used by the agent to declare and invoke tools uniformly.

    ``args_model`` is the pydantic model arguments are validated and coerced
    with; when set, ``parameters`` is its JSON schema.
    """

    name: str
    fn: ToolFn
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    args_model: Optional[Type[BaseModel]] = None

    def declaration(self) -> Dict[str, Any]:
        """Render the tool entry sent to the model alongside the messages."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """
    Name -> ToolSpec mapping built once at startup.

    Registering a name twice replaces the earlier handler (last write wins) while
    keeping its declaration position, so call sites control the active set.
    After ``freeze()`` the registry is read-only and safe to share between threads.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}
        self._frozen = False

    def register(
        self,
        name: str,
        handler: ToolFn,
        description: str = "",
        parameters: Optional[Dict[str, Any]] = None,
        args_model: Optional[Type[BaseModel]] = None,
    ) -> ToolSpec:
        """
        Insert or replace the handler for ``name``.

        When ``args_model`` is given and ``parameters`` is not, the declared
        parameter schema is the model's JSON schema.
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register '{name}': tool registry is frozen.")
        if not name:
            raise ValueError("Tool name must be a non-empty string.")
        if parameters is None and args_model is not None:
            parameters = args_model.model_json_schema()
        extra: Dict[str, Any] = {"parameters": parameters} if parameters is not None else {}
        spec = ToolSpec(name=name, fn=handler, description=description, args_model=args_model, **extra)
        self._tools[name] = spec
        return spec

    def freeze(self) -> "ToolRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> Optional[ToolFn]:
        """Return the handler registered under ``name``, or None when unknown."""
        spec = self._tools.get(name)
        return spec.fn if spec is not None else None

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def declarations(self) -> List[Dict[str, Any]]:
        """Tool declarations in registration order."""
        return [spec.declaration() for spec in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(list(self._tools.values()))


def build_tool_registry() -> ToolRegistry:
    """Assemble the default, frozen registry used by the CLI and the web page."""
    from toolbot.tools.calculator import register_calculator

    registry = ToolRegistry()
    register_calculator(registry)
    return registry.freeze()
