from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple

import anyio
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from . import SERVER_NAME, __version__
from .config import Settings, get_settings
from .errors import MissingCredentialsError, ProtocolError, SessionError
from .protocol import handle_message, list_tools_payload, make_error, parse_message
from .sessions import ClientInfo, Session, SessionManager
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
SESSION_ID_HEADER = "X-Session-ID"
AUTH_TOKEN_HEADER = "X-Auth-Token"
SSE_PING_INTERVAL = 15.0


def _credentials(request: Request) -> Tuple[Optional[str], Optional[str]]:
    session_id = request.headers.get(SESSION_HEADER) or None
    scheme, _, token = (request.headers.get("authorization") or "").strip().partition(" ")
    auth_token = None
    if scheme.lower() == "bearer":
        auth_token = token.strip() or None
    return session_id, auth_token


def _client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        user_agent=request.headers.get("user-agent"),
        source_address=request.client.host if request.client else None,
    )


def create_http_app(
    registry: ToolRegistry,
    settings: Optional[Settings] = None,
    sessions: Optional[SessionManager] = None,
) -> FastAPI:
    """
    Create FastAPI app that carries the tool protocol over HTTP.

    - POST /mcp: one JSON-RPC message per request, answered as JSON. A request
      with no credentials opens a session; the new identifiers come back in
      the `Mcp-Session-Id`, `X-Session-ID` and `X-Auth-Token` headers.
    - GET /mcp: server-sent-events stream of the session's outbound messages.
    - DELETE /mcp: explicit session close.

    Existing sessions require both `Mcp-Session-Id` and
    `Authorization: Bearer <token>`.
    """
    settings = settings or get_settings()
    if sessions is None:
        sessions = SessionManager(
            timeout_seconds=settings.session_timeout_seconds,
            verify_client_ip=settings.client_ip_check_enabled,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with anyio.create_task_group() as tg:
            tg.start_soon(sessions.run_sweeper, settings.session_sweep_interval_seconds)
            yield
            tg.cancel_scope.cancel()
        sessions.close_all()
        logger.debug("HTTP MCP Server stopped")

    app = FastAPI(
        title="Tailnet MCP Server",
        version=__version__,
        description="Network-management tools over the Model Context Protocol",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.sessions = sessions

    # Preflight requests are answered here and never reach the session table.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=[
            "Origin",
            "X-Requested-With",
            "Content-Type",
            "Accept",
            "Authorization",
            SESSION_HEADER,
        ],
        expose_headers=[SESSION_HEADER, SESSION_ID_HEADER, AUTH_TOKEN_HEADER],
    )

    @app.exception_handler(SessionError)
    async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    def require_session(request: Request) -> Session:
        session_id, auth_token = _credentials(request)
        if not session_id or not auth_token:
            raise MissingCredentialsError("Session ID and authorization token are required")
        return sessions.validate(session_id, auth_token, _client_info(request).source_address)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "server": SERVER_NAME,
            "mode": "http",
            "tools": len(registry),
        }

    @app.get("/tools")
    async def tools() -> Dict[str, Any]:
        return list_tools_payload(registry)

    @app.get("/sessions")
    async def list_sessions() -> JSONResponse:
        if not settings.sessions_endpoint_enabled:
            return JSONResponse(status_code=404, content={"error": "Not found"})
        summary = sessions.snapshot()
        return JSONResponse(content={"activeSessions": len(summary), "sessions": summary})

    @app.post("/mcp")
    async def mcp_post(request: Request) -> Response:
        session_id, auth_token = _credentials(request)
        session, created = sessions.authenticate(session_id, auth_token, _client_info(request))

        headers = {SESSION_HEADER: session.session_id}
        if created:
            headers[SESSION_ID_HEADER] = session.session_id
            headers[AUTH_TOKEN_HEADER] = session.auth_token

        body = await request.body()
        try:
            message = parse_message(body)
        except ProtocolError as e:
            return JSONResponse(
                status_code=400, content=make_error(e.message_id, e.code, e.message), headers=headers
            )

        try:
            response = await handle_message(registry, message)
        except Exception:
            logger.exception("Error handling MCP request for session %s", session.session_id)
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
                headers=headers,
            )
        if response is None:
            return Response(status_code=202, headers=headers)
        return JSONResponse(content=response, headers=headers)

    @app.get("/mcp")
    async def mcp_stream(request: Request) -> StreamingResponse:
        session = require_session(request)

        async def generate_sse() -> AsyncIterator[str]:
            """Forward channel messages as SSE events until the channel closes."""
            async with session.channel.subscribe() as receive:
                while True:
                    with anyio.move_on_after(SSE_PING_INTERVAL) as scope:
                        try:
                            message = await receive.receive()
                        except (anyio.EndOfStream, anyio.ClosedResourceError):
                            return
                    if scope.cancelled_caught:
                        yield ": ping\n\n"
                        continue
                    yield f"data: {json.dumps(message)}\n\n"

        return StreamingResponse(
            generate_sse(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering
                SESSION_HEADER: session.session_id,
            },
        )

    @app.delete("/mcp")
    async def mcp_delete(request: Request) -> Response:
        session = require_session(request)
        session.channel.close()
        logger.debug("Session %s closed by client", session.session_id)
        return Response(status_code=204)

    return app


async def run_http_server(
    registry: ToolRegistry,
    settings: Optional[Settings] = None,
    host: str = "0.0.0.0",
    port: int = 3000,
) -> None:
    """Run the HTTP server using uvicorn."""
    import uvicorn

    app = create_http_app(registry, settings)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=True,
    )
    server = uvicorn.Server(config)
    logger.info("HTTP server listening on %s:%s (MCP endpoint /mcp)", host, port)
    await server.serve()
    if not server.started:
        raise RuntimeError(f"HTTP server failed to bind {host}:{port}")
