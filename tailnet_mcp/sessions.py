"""
Session table for the HTTP transport.

The SessionManager is the only component that mutates the table. All access
happens on the event loop thread and no method awaits while holding table
state, so no lock is needed.

Lifecycle: Created -> Active -> (Expired | Closed) -> Removed.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .errors import InvalidSessionError, MissingCredentialsError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

OUTBOX_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_auth_token() -> str:
    return secrets.token_hex(32)


@dataclass(frozen=True)
class ClientInfo:
    user_agent: Optional[str] = None
    source_address: Optional[str] = None


class SessionChannel:
    """
    Outbound message stream for one session.

    Messages published here are delivered to the session's server-sent-events
    stream. Closing the channel ends that stream and fires `on_close`.
    """

    def __init__(self, on_close: Optional[Callable[[], None]] = None) -> None:
        self._send: MemoryObjectSendStream[Dict[str, Any]]
        self._receive: MemoryObjectReceiveStream[Dict[str, Any]]
        self._send, self._receive = anyio.create_memory_object_stream(OUTBOX_SIZE)
        self._on_close = on_close
        self.closed = False

    def publish(self, message: Dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            self._send.send_nowait(message)
        except anyio.WouldBlock:
            logger.warning("Session outbox full, dropping message")
            return False
        return True

    def subscribe(self) -> MemoryObjectReceiveStream[Dict[str, Any]]:
        """Return a receiver that ends once the channel is closed."""
        return self._receive.clone()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._send.close()
        self._receive.close()
        if self._on_close is not None:
            self._on_close()


@dataclass
class Session:
    session_id: str
    auth_token: str = field(repr=False)
    created_at: datetime
    last_accessed: datetime
    client_info: ClientInfo
    channel: SessionChannel

    def summary(self) -> Dict[str, Any]:
        """Introspection view; never includes the auth token."""
        return {
            "sessionId": self.session_id,
            "createdAt": self.created_at.isoformat(),
            "lastAccessed": self.last_accessed.isoformat(),
            "clientInfo": {
                "userAgent": self.client_info.user_agent,
                "ip": self.client_info.source_address,
            },
        }


class SessionManager:
    def __init__(
        self,
        timeout_seconds: float = 3600,
        verify_client_ip: bool = False,
        clock: Clock = _utcnow,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._timeout = timedelta(seconds=timeout_seconds)
        self._verify_client_ip = verify_client_ip
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def create(self, client_info: ClientInfo) -> Session:
        session_id = str(uuid.uuid4())
        now = self._clock()
        session = Session(
            session_id=session_id,
            auth_token=generate_auth_token(),
            created_at=now,
            last_accessed=now,
            client_info=client_info,
            channel=SessionChannel(on_close=lambda: self.remove(session_id)),
        )
        self._sessions[session_id] = session
        logger.debug(
            "New authenticated session initialized: %s from IP %s",
            session_id,
            client_info.source_address,
        )
        return session

    def is_expired(self, session: Session) -> bool:
        return self._clock() - session.last_accessed > self._timeout

    def validate(self, session_id: str, auth_token: str, source_address: Optional[str] = None) -> Session:
        """
        Check ownership of an existing session and refresh its access time.

        Every failure raises the same InvalidSessionError; the specific cause
        is only logged.
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning("Session validation failed: session %s not found", session_id)
            raise InvalidSessionError()

        if not hmac.compare_digest(session.auth_token.encode(), auth_token.encode()):
            logger.warning(
                "Session validation failed: invalid auth token for session %s from IP %s",
                session_id,
                source_address,
            )
            raise InvalidSessionError()

        if self.is_expired(session):
            logger.debug("Session %s expired before sweep, removing", session_id)
            self.remove(session_id)
            raise InvalidSessionError()

        recorded = session.client_info.source_address
        if self._verify_client_ip and recorded and source_address and recorded != source_address:
            logger.warning(
                "Session validation failed: IP mismatch for session %s. Expected %s, got %s",
                session_id,
                recorded,
                source_address,
            )
            raise InvalidSessionError()

        self.touch(session)
        return session

    def authenticate(
        self,
        session_id: Optional[str],
        auth_token: Optional[str],
        client_info: ClientInfo,
    ) -> Tuple[Session, bool]:
        """
        Resolve the credentials on an incoming request.

        Returns (session, created). Neither credential creates a session, both
        validate one, and exactly one is rejected without touching the table.
        """
        if session_id and auth_token:
            return self.validate(session_id, auth_token, client_info.source_address), False
        if not session_id and not auth_token:
            return self.create(client_info), True
        raise MissingCredentialsError()

    def touch(self, session: Session) -> None:
        session.last_accessed = self._clock()

    def remove(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.debug("Removing session %s", session_id)
        session.channel.close()
        return True

    def sweep(self) -> List[str]:
        """Remove every session idle for longer than the timeout."""
        expired = [sid for sid, s in self._sessions.items() if self.is_expired(s)]
        for session_id in expired:
            logger.debug("Cleaning up expired session: %s", session_id)
            self.remove(session_id)
        return expired

    async def run_sweeper(self, interval_seconds: float) -> None:
        while True:
            await anyio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.info("Expired %d idle sessions", len(removed))

    def snapshot(self) -> List[Dict[str, Any]]:
        return [session.summary() for session in self._sessions.values()]

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            logger.debug("Cleaning up session on shutdown: %s", session_id)
            self.remove(session_id)
