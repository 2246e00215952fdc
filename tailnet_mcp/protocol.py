"""
JSON-RPC 2.0 envelope handling shared by the stdio and HTTP transports.

Supported methods:
- initialize: server handshake
- ping: liveness
- tools/list (alias list_tools): registered tool declarations
- tools/call (alias call_tool): dispatch through the ToolRegistry

Requests without an `id` are notifications and produce no response.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Union

from mcp import types

from . import SERVER_NAME, __version__
from .errors import ProtocolError
from .models import dump_result
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

LIST_TOOLS_METHODS = ("tools/list", "list_tools")
CALL_TOOL_METHODS = ("tools/call", "call_tool")


def make_result(message_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": message_id, "result": result}


def make_error(message_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": message_id, "error": {"code": code, "message": message}}


def parse_message(raw: Union[str, bytes]) -> Dict[str, Any]:
    """Decode one frame into a request dict or raise ProtocolError."""
    try:
        message = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise ProtocolError(types.PARSE_ERROR, f"Parse error: {e}") from e

    if not isinstance(message, dict):
        raise ProtocolError(types.INVALID_REQUEST, "Invalid Request: expected a JSON object")

    message_id = message.get("id")
    if isinstance(message_id, bool) or not isinstance(message_id, (str, int, float)):
        message_id = None
    if message.get("jsonrpc", "2.0") != "2.0":
        raise ProtocolError(types.INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'", message_id)
    if not isinstance(message.get("method"), str) or not message["method"]:
        raise ProtocolError(types.INVALID_REQUEST, "Invalid Request: method is required", message_id)
    return message


def list_tools_payload(registry: ToolRegistry) -> Dict[str, Any]:
    return {
        "tools": [
            tool.model_dump(mode="json", by_alias=True, exclude_none=True)
            for tool in registry.list_tools()
        ]
    }


async def handle_message(registry: ToolRegistry, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Route one parsed request and build its response.

    Tool-level failures are results with `isError`; only structurally
    malformed requests become JSON-RPC errors.
    """
    method = message["method"]
    message_id = message.get("id")
    params = message.get("params")
    is_notification = "id" not in message

    if params is None:
        params = {}
    if not isinstance(params, dict):
        response = make_error(message_id, types.INVALID_PARAMS, "Invalid params: expected an object")
        return None if is_notification else response

    try:
        if method == "initialize":
            response = make_result(
                message_id,
                {
                    "protocolVersion": params.get("protocolVersion") or types.LATEST_PROTOCOL_VERSION,
                    "capabilities": {"tools": {"listChanged": False}},
                    "serverInfo": {"name": SERVER_NAME, "version": __version__},
                },
            )
        elif method == "ping":
            response = make_result(message_id, {})
        elif method in LIST_TOOLS_METHODS:
            response = make_result(message_id, list_tools_payload(registry))
        elif method in CALL_TOOL_METHODS:
            tool_name = params.get("name")
            arguments = params.get("arguments")
            if not isinstance(tool_name, str) or not tool_name:
                response = make_error(message_id, types.INVALID_PARAMS, "Invalid params: 'name' is required")
            elif arguments is not None and not isinstance(arguments, dict):
                response = make_error(
                    message_id, types.INVALID_PARAMS, "Invalid params: 'arguments' must be an object"
                )
            else:
                result = await registry.dispatch(tool_name, arguments or {})
                response = make_result(message_id, dump_result(result))
        elif method.startswith("notifications/"):
            logger.debug("Received notification %s", method)
            response = None
        else:
            response = make_error(message_id, types.METHOD_NOT_FOUND, f"Method not found: {method}")
    except Exception:
        logger.exception("Error handling method %s", method)
        response = make_error(message_id, types.INTERNAL_ERROR, "Internal error")

    if is_notification:
        return None
    return response
