"""Exception hierarchy for tailnet-mcp.

    TailnetMCPError
    ├── BackendError(status_code)
    │   └── CLIError(stderr)
    ├── SessionError(status_code, code)
    │   ├── MissingCredentialsError   400 MISSING_CREDENTIALS
    │   └── InvalidSessionError       401 INVALID_SESSION
    └── ProtocolError(code)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class TailnetMCPError(Exception):
    """Base exception for all tailnet-mcp errors."""


# ─── Backend Errors ───────────────────────────────────────────


class BackendError(TailnetMCPError):
    """A backend operation failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CLIError(BackendError):
    """The management CLI exited abnormally."""

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        super().__init__(message)


# ─── Session Errors ───────────────────────────────────────────


class SessionError(TailnetMCPError):
    """Rejection of an HTTP request before any tool is identified."""

    status_code = 400
    code = "SESSION_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class MissingCredentialsError(SessionError):
    status_code = 400
    code = "MISSING_CREDENTIALS"

    def __init__(self, message: str = "Both session ID and authorization token are required") -> None:
        super().__init__(message)


class InvalidSessionError(SessionError):
    """Unknown session, expired session, wrong token or address mismatch.

    Every cause produces the same message.
    """

    status_code = 401
    code = "INVALID_SESSION"

    def __init__(self) -> None:
        super().__init__("Invalid session or authentication token")


# ─── Protocol Errors ──────────────────────────────────────────


class ProtocolError(TailnetMCPError):
    """
    Malformed JSON-RPC envelope.

    `message_id` is the request id when the frame decoded far enough to
    carry one, so the error response can echo it.
    """

    def __init__(self, code: int, message: str, message_id: Any = None) -> None:
        self.code = code
        self.message = message
        self.message_id = message_id
        super().__init__(message)


def error_message(error: BaseException) -> str:
    """Extract a caller-safe, human-readable message from an exception."""
    if isinstance(error, CLIError):
        return error.stderr.strip() or error.message
    if isinstance(error, BackendError):
        return error.message
    if isinstance(error, httpx.HTTPStatusError):
        try:
            body = error.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("error") or body.get("message")
            if detail:
                return str(detail)
        return f"HTTP {error.response.status_code}"
    if isinstance(error, httpx.TimeoutException):
        return "Request to management API timed out"
    text = str(error)
    if text:
        return text
    logger.debug("Exception without message: %r", error)
    return type(error).__name__
