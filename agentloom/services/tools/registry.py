"""
Tool registry.

A tool is a named async callable with a pydantic argument schema. The
registry validates model-supplied arguments before calling, and exposes
JSON-schema specs for binding tools to a model.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError

from agentloom.models.dto.messages import ToolCall
from agentloom.services.llm.clients.base import ToolSpec

logger = logging.getLogger(__name__)

ToolFunc = Callable[[Any], Awaitable[str]]


class ToolError(Exception):
    """Tool lookup or argument validation failed."""


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args_schema: Type[BaseModel]
    func: ToolFunc

    def to_spec(self) -> ToolSpec:
        schema = self.args_schema.model_json_schema()
        schema.pop("title", None)
        return {"name": self.name, "description": self.description, "parameters": schema}

    async def run(self, args: Dict[str, Any]) -> str:
        try:
            parsed = self.args_schema.model_validate(args or {})
        except ValidationError as e:
            raise ToolError(f"Invalid arguments for {self.name}: {e}") from e
        result = await self.func(parsed)
        return result if isinstance(result, str) else str(result)


class ToolRegistry:
    """Ordered name -> Tool map."""

    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: Tool) -> Tool:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool
        return tool

    def extend(self, tools: Iterable[Tool]) -> "ToolRegistry":
        for tool in tools:
            self.register(tool)
        return self

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolError(f"Unknown tool '{name}'. Available: {self.names()}") from None

    def names(self) -> List[str]:
        return list(self._tools)

    def schemas(self) -> List[ToolSpec]:
        return [tool.to_spec() for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, call: ToolCall) -> str:
        """Validate and run one tool call. Raises ToolError or whatever the tool raises."""
        tool = self.get(call.name)
        logger.debug(f"🔧 Running tool {call.name} ({call.id})")
        return await tool.run(call.args)
