"""
Session Context

The authenticated user, held in one object that is passed explicitly to
every service that needs the caller's identity. refresh() is the only way
the user is (re)loaded.
"""

from typing import Optional

import structlog

from fintrack.audit.logger import AuditLogger
from fintrack.errors import NotAuthenticated
from fintrack.models.group import User
from fintrack.services.backend.interface import UserBackendInterface


class SessionContext:
    """
    Who is acting.

    Usage:
        session = SessionContext(backend)
        await session.refresh()
        session.user_id
    """

    def __init__(
        self,
        backend: UserBackendInterface,
        user: Optional[User] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._user = user
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

    @property
    def user(self) -> User:
        if self._user is None:
            raise NotAuthenticated()
        return self._user

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    async def refresh(self) -> User:
        """
        Reload the user from the backend.

        On failure the previously loaded user is kept and the error propagates.
        """
        user = await self._backend.get_current_user()
        self._user = user
        self._logger.debug("session_refreshed", user_id=user.id)
        if self._audit_logger:
            await self._audit_logger.log_session_refreshed(user.id)
        return user

    def clear(self) -> None:
        """Forget the user (sign-out)."""
        self._user = None
