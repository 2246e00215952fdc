"""
Network-management backend.

`UnifiedBackend` is what the tool registry receives as its opaque backend; it
delegates to the management API client or the local CLI wrapper.
"""

from .api_client import TailnetAPIClient
from .base import EXIT_NODE_ROUTES, Backend, BackendResponse, ConnectOptions
from .cli_client import TailnetCLI
from .unified import UnifiedBackend

__all__ = [
    "EXIT_NODE_ROUTES",
    "Backend",
    "BackendResponse",
    "ConnectOptions",
    "TailnetAPIClient",
    "TailnetCLI",
    "UnifiedBackend",
]
