"""
Tailnet MCP server package.

This package exposes network-management operations as MCP tools:
- Device administration (authorize, delete, expire keys, routes)
- Network operations (status, connect, disconnect, ping, version)

Two transports carry the protocol:
- stdio: one trusted parent process over stdin/stdout
- http: many concurrent callers with bearer-token sessions
"""

__version__ = "0.1.0"

SERVER_NAME = "tailnet-mcp"
