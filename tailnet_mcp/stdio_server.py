"""
Single-stream transport: newline-delimited JSON-RPC over stdin/stdout.

Frames are handled strictly one at a time, in arrival order. Nothing but
protocol frames is ever written to stdout.
"""

from __future__ import annotations

import io
import json
import logging
import signal
import sys
from typing import IO, Any, Dict, Optional, TextIO, Union

import anyio
import anyio.to_thread
from mcp import types

from .errors import ProtocolError
from .protocol import handle_message, make_error, parse_message
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class StdioServer:
    """
    Reads frames from `stdin` and writes responses to `stdout`.

    By default frames are read as raw bytes from the process's stdin so that
    undecodable input is reported as a parse error instead of ending the loop.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        stdin: Optional[IO[Any]] = None,
        stdout: Optional[TextIO] = None,
        heartbeat_interval: float = 30,
        shutdown_grace: float = 5,
    ) -> None:
        self.registry = registry
        self._stdin = stdin or sys.stdin.buffer
        self._stdout = stdout or io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", line_buffering=True)
        self._heartbeat_interval = heartbeat_interval
        self._shutdown_grace = shutdown_grace
        self._scope: Optional[anyio.CancelScope] = None
        self._stopping = False
        self._idle: Optional[anyio.Event] = None
        self.frames_handled = 0

    def _write(self, line: str) -> None:
        self._stdout.write(line + "\n")
        self._stdout.flush()

    async def send(self, message: Dict[str, Any]) -> None:
        await anyio.to_thread.run_sync(self._write, json.dumps(message))

    async def handle_line(self, line: Union[str, bytes]) -> None:
        try:
            message = parse_message(line)
        except ProtocolError as e:
            logger.warning("Rejected malformed frame: %s", e.message)
            await self.send(make_error(e.message_id, e.code, e.message))
            return

        response = await handle_message(self.registry, message)
        self.frames_handled += 1
        if response is not None:
            await self.send(response)

    async def _read_loop(self) -> None:
        while not self._stopping:
            try:
                line = await anyio.to_thread.run_sync(self._stdin.readline, abandon_on_cancel=True)
            except UnicodeDecodeError as e:
                # Only a caller-supplied text stream decodes inside readline.
                logger.warning("Rejected undecodable frame: %s", e)
                await self.send(make_error(None, types.PARSE_ERROR, f"Parse error: {e}"))
                continue
            if not line:
                logger.info("Input stream closed, shutting down")
                return
            if not line.strip():
                continue

            self._idle = anyio.Event()
            try:
                await self.handle_line(line)
            finally:
                self._idle.set()

    async def _heartbeat(self) -> None:
        while True:
            await anyio.sleep(self._heartbeat_interval)
            logger.debug("Heartbeat: %d frames handled", self.frames_handled)

    async def _watch_signals(self) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                logger.info("Received %s, shutting down", signal.Signals(signum).name)
                await self.stop()
                return

    async def stop(self) -> None:
        """Stop reading, give the in-flight frame `shutdown_grace` seconds, then exit."""
        self._stopping = True
        with anyio.move_on_after(self._shutdown_grace) as scope:
            if self._idle is not None:
                await self._idle.wait()
        if scope.cancelled_caught:
            logger.warning("In-flight request did not finish within %ss", self._shutdown_grace)
        if self._scope is not None:
            self._scope.cancel()

    async def serve(self, handle_signals: bool = True) -> None:
        logger.info("Stdio server ready with %d tools", len(self.registry))
        async with anyio.create_task_group() as tg:
            self._scope = tg.cancel_scope
            tg.start_soon(self._heartbeat)
            if handle_signals:
                tg.start_soon(self._watch_signals)
            await self._read_loop()
            tg.cancel_scope.cancel()
        self._scope = None
        logger.info("Stdio server stopped")
