from __future__ import annotations

from typing import Any, Dict, Union

from mcp import types

from ..errors import error_message


def tool_success(text: str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


def tool_error(error: Union[BaseException, str, None]) -> types.CallToolResult:
    """Error result whose only content is a plain-text description of `error`."""
    if isinstance(error, BaseException):
        text = error_message(error)
    else:
        text = error or "Unknown error"
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=True,
    )


def dump_result(result: types.CallToolResult) -> Dict[str, Any]:
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
