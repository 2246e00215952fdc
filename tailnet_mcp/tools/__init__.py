"""
Tool registration and dispatch.

Each module in this package exposes a `register_tools(registry)` function that
adds its tools to the registry shared by both transports.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

from mcp import types
from pydantic import BaseModel, ValidationError

from ..errors import error_message
from ..models import ToolContext, tool_error

logger = logging.getLogger(__name__)


ToolHandler = Callable[[Any, ToolContext], Awaitable[types.CallToolResult]]


@dataclass(frozen=True)
class ToolDefinition:
    """
    A named tool: pydantic model `schema` validates (and defaults) the raw
    arguments and also describes them as JSON Schema for listing.
    """

    name: str
    description: str
    schema: Type[BaseModel]
    handler: ToolHandler

    def input_schema(self) -> Dict[str, Any]:
        return self.schema.model_json_schema()

    def to_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema(),
        )


def format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{location}: {err['msg']}")
    return "Invalid arguments: " + "; ".join(parts)


class ToolRegistry:
    """
    In-memory registry mapping tool names to their definitions.

    Dispatch never raises for caller or handler errors: unknown tools,
    invalid arguments and handler exceptions all come back as error results.
    """

    def __init__(self, context: ToolContext) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._context = context
        self.duplicates: List[str] = []

    @property
    def context(self) -> ToolContext:
        return self._context

    def register(self, definition: ToolDefinition) -> None:
        if definition.name in self._tools:
            logger.warning(
                'Duplicate tool name detected: "%s" - overriding previous definition',
                definition.name,
            )
            self.duplicates.append(definition.name)
            # Re-insert so listing order follows the latest registration.
            del self._tools[definition.name]
        self._tools[definition.name] = definition

    def add_tool(
        self,
        name: str,
        description: str,
        schema: Type[BaseModel],
        handler: ToolHandler,
    ) -> None:
        self.register(ToolDefinition(name=name, description=description, schema=schema, handler=handler))

    def list_tools(self) -> List[types.Tool]:
        return [definition.to_tool() for definition in self._tools.values()]

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def dispatch(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> types.CallToolResult:
        definition = self._tools.get(name)
        if definition is None:
            return tool_error(f"Unknown tool: {name}")

        try:
            args = definition.schema.model_validate(arguments if arguments is not None else {})
        except ValidationError as e:
            logger.warning("Invalid arguments for %s: %s", name, e.errors())
            return tool_error(format_validation_error(e))

        try:
            return await definition.handler(args, self._context)
        except Exception as e:
            logger.exception("Tool error in %s", name)
            return tool_error(f"Tool error: {error_message(e)}")

    async def aclose(self) -> None:
        logger.debug("Disposing ToolRegistry resources...")
        self._tools.clear()
        await self._context.backend.aclose()
