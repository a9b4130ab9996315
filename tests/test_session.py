"""Tests for the session context and audit logging around it."""

import asyncio
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from fintrack.audit import AuditLogger
from fintrack.errors import NotAuthenticated
from fintrack.models.audit import AuditEvent, AuditEventType
from fintrack.services.backend import InMemoryAuditStorage, NetworkFailure
from fintrack.session import SessionContext


class TestSessionContext:
    """Tests for loading and clearing the session user."""

    def test_user_required(self, backend):
        session = SessionContext(backend)
        assert not session.is_authenticated
        with pytest.raises(NotAuthenticated):
            session.user_id

    def test_refresh_loads_signed_in_user(self, backend, owner):
        backend.sign_in(owner.id)
        session = SessionContext(backend)

        user = asyncio.run(session.refresh())

        assert user.id == owner.id
        assert session.user_id == owner.id
        assert session.user.display_name == "Ana Silva"

    def test_failed_refresh_keeps_previous_user(self, backend, owner):
        session = SessionContext(backend, user=owner)
        backend.inject_failure("get_current_user")

        with pytest.raises(NetworkFailure):
            asyncio.run(session.refresh())

        assert session.user_id == owner.id

    def test_refresh_without_sign_in_fails(self, backend):
        session = SessionContext(backend)
        with pytest.raises(NetworkFailure) as exc_info:
            asyncio.run(session.refresh())
        assert exc_info.value.status_code == 401

    def test_clear(self, backend, owner):
        session = SessionContext(backend, user=owner)
        session.clear()
        assert not session.is_authenticated

    def test_refresh_is_audited(self, backend, owner):
        storage = InMemoryAuditStorage()
        backend.sign_in(owner.id)
        session = SessionContext(backend, audit_logger=AuditLogger(storage))

        asyncio.run(session.refresh())

        assert [e.event_type for e in storage.events] == [AuditEventType.SESSION_REFRESHED]


class TestAuditLogger:
    """Tests for audit persistence."""

    def test_without_storage_logs_locally(self):
        event = AuditEvent(event_type=AuditEventType.ROLE_DELETED, description="Role deleted: X")
        assert asyncio.run(AuditLogger().log(event)) is True

    def test_failing_storage_does_not_raise(self):
        """Test that a broken audit sink never breaks the audited action."""
        storage = InMemoryAuditStorage()
        storage.append_event = AsyncMock(side_effect=RuntimeError("disk full"))
        event = AuditEvent(event_type=AuditEventType.ROLE_DELETED, description="Role deleted: X")

        assert asyncio.run(AuditLogger(storage).log(event)) is False

    def test_events_by_correlation_id(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = uuid4()

        asyncio.run(logger.log_role_deleted(1, 2, "Filhos", actor_id=3, correlation_id=correlation_id))
        asyncio.run(logger.log_session_refreshed(3))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [AuditEventType.ROLE_DELETED]
        assert len(asyncio.run(storage.get_recent_events(limit=1))) == 1
