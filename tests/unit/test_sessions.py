"""Tests for the HTTP session table."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import anyio
import pytest

from tailnet_mcp.errors import InvalidSessionError, MissingCredentialsError
from tailnet_mcp.sessions import ClientInfo, SessionChannel, SessionManager


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(clock: FakeClock) -> SessionManager:
    return SessionManager(timeout_seconds=60, clock=clock)


CLIENT = ClientInfo(user_agent="pytest", source_address="10.0.0.1")

# ── Creation ────────────────────────────────────────────────────────


class TestCreation:
    def test_no_credentials_creates_session(self, manager: SessionManager) -> None:
        session, created = manager.authenticate(None, None, CLIENT)
        assert created is True
        assert session.session_id in manager
        assert len(session.auth_token) == 64
        assert session.client_info == CLIENT

    def test_identifiers_are_unique(self, manager: SessionManager) -> None:
        first = manager.create(CLIENT)
        second = manager.create(CLIENT)
        assert first.session_id != second.session_id
        assert first.auth_token != second.auth_token

    def test_credentials_accepted_on_next_request(self, manager: SessionManager) -> None:
        session, _ = manager.authenticate(None, None, CLIENT)
        again, created = manager.authenticate(session.session_id, session.auth_token, CLIENT)
        assert created is False
        assert again is session
        assert len(manager) == 1

    def test_token_not_in_repr(self, manager: SessionManager) -> None:
        session = manager.create(CLIENT)
        assert session.auth_token not in repr(session)


# ── Rejection ───────────────────────────────────────────────────────


class TestRejection:
    @pytest.mark.parametrize("session_id, token", [("abc", None), (None, "tok"), ("abc", ""), ("", "tok")])
    def test_partial_credentials(self, manager: SessionManager, session_id, token) -> None:
        with pytest.raises(MissingCredentialsError) as exc_info:
            manager.authenticate(session_id, token, CLIENT)
        assert exc_info.value.to_dict()["code"] == "MISSING_CREDENTIALS"
        assert exc_info.value.status_code == 400
        assert len(manager) == 0

    def test_unknown_session(self, manager: SessionManager) -> None:
        with pytest.raises(InvalidSessionError) as exc_info:
            manager.validate("missing", "token")
        assert exc_info.value.status_code == 401

    def test_token_mismatch_does_not_touch(
        self, manager: SessionManager, clock: FakeClock, caplog: pytest.LogCaptureFixture
    ) -> None:
        session = manager.create(CLIENT)
        before = session.last_accessed
        clock.advance(10)
        with caplog.at_level(logging.WARNING, logger="tailnet_mcp.sessions"):
            with pytest.raises(InvalidSessionError):
                manager.validate(session.session_id, "0" * 64, "10.0.0.1")
        assert session.last_accessed == before
        assert any("invalid auth token" in r.getMessage() for r in caplog.records)

    def test_non_ascii_token_rejected(self, manager: SessionManager) -> None:
        session = manager.create(CLIENT)
        with pytest.raises(InvalidSessionError):
            manager.validate(session.session_id, "tökën")

    def test_every_cause_has_same_message(self, manager: SessionManager) -> None:
        session = manager.create(CLIENT)
        messages = set()
        for sid, token in [("missing", "x"), (session.session_id, "wrong")]:
            with pytest.raises(InvalidSessionError) as exc_info:
                manager.validate(sid, token)
            messages.add(exc_info.value.message)
        assert len(messages) == 1


# ── Access time and expiry ──────────────────────────────────────────


class TestExpiry:
    def test_validate_refreshes_last_accessed(self, manager: SessionManager, clock: FakeClock) -> None:
        session = manager.create(CLIENT)
        clock.advance(30)
        manager.validate(session.session_id, session.auth_token)
        assert session.last_accessed == clock.now

    def test_sweep_removes_idle_sessions(self, manager: SessionManager, clock: FakeClock) -> None:
        idle = manager.create(CLIENT)
        clock.advance(45)
        busy = manager.create(CLIENT)
        clock.advance(30)

        removed = manager.sweep()

        assert removed == [idle.session_id]
        assert idle.session_id not in manager
        assert busy.session_id in manager
        assert idle.channel.closed

    def test_old_credentials_rejected_after_sweep(self, manager: SessionManager, clock: FakeClock) -> None:
        session = manager.create(CLIENT)
        clock.advance(61)
        manager.sweep()
        with pytest.raises(InvalidSessionError):
            manager.authenticate(session.session_id, session.auth_token, CLIENT)

    def test_expired_before_sweep_is_rejected(self, manager: SessionManager, clock: FakeClock) -> None:
        session = manager.create(CLIENT)
        clock.advance(61)
        with pytest.raises(InvalidSessionError):
            manager.validate(session.session_id, session.auth_token)
        assert session.session_id not in manager

    def test_threshold_is_exclusive(self, manager: SessionManager, clock: FakeClock) -> None:
        session = manager.create(CLIENT)
        clock.advance(60)
        assert manager.sweep() == []
        assert session.session_id in manager

    async def test_run_sweeper(self, clock: FakeClock) -> None:
        manager = SessionManager(timeout_seconds=60, clock=clock)
        session = manager.create(CLIENT)
        clock.advance(120)
        with anyio.move_on_after(0.2):
            await manager.run_sweeper(0.01)
        assert session.session_id not in manager


# ── Source-address checking ─────────────────────────────────────────


class TestClientIpCheck:
    def test_disabled_by_default(self, manager: SessionManager) -> None:
        session = manager.create(CLIENT)
        assert manager.validate(session.session_id, session.auth_token, "10.9.9.9") is session

    def test_mismatch_rejected_when_enabled(self, clock: FakeClock) -> None:
        manager = SessionManager(timeout_seconds=60, verify_client_ip=True, clock=clock)
        session = manager.create(CLIENT)
        with pytest.raises(InvalidSessionError):
            manager.validate(session.session_id, session.auth_token, "10.9.9.9")
        assert manager.validate(session.session_id, session.auth_token, "10.0.0.1") is session


# ── Channels and introspection ──────────────────────────────────────


class TestChannel:
    def test_channel_close_removes_session(self, manager: SessionManager) -> None:
        session = manager.create(CLIENT)
        session.channel.close()
        assert session.session_id not in manager

    def test_close_is_idempotent(self) -> None:
        calls = []
        channel = SessionChannel(on_close=lambda: calls.append(1))
        channel.close()
        channel.close()
        assert calls == [1]
        assert channel.publish({"x": 1}) is False

    async def test_published_messages_delivered(self) -> None:
        channel = SessionChannel()
        receive = channel.subscribe()
        assert channel.publish({"method": "notifications/tools/list_changed"})
        channel.close()
        async with receive:
            received = [message async for message in receive]
        assert received == [{"method": "notifications/tools/list_changed"}]

    def test_snapshot_has_no_tokens(self, manager: SessionManager) -> None:
        session = manager.create(CLIENT)
        snapshot = manager.snapshot()
        assert snapshot[0]["sessionId"] == session.session_id
        assert snapshot[0]["clientInfo"] == {"userAgent": "pytest", "ip": "10.0.0.1"}
        assert session.auth_token not in str(snapshot)

    def test_close_all(self, manager: SessionManager) -> None:
        sessions = [manager.create(CLIENT) for _ in range(3)]
        manager.close_all()
        assert len(manager) == 0
        assert all(s.channel.closed for s in sessions)
