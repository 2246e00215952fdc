from .context import ToolContext
from .result import dump_result, tool_error, tool_success

__all__ = ["ToolContext", "dump_result", "tool_error", "tool_success"]
