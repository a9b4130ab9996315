"""
Shared fixtures.

Every test runs against a fresh InMemoryBackend seeded with one group
("Casa") owned by Ana, with Bruno as a Membro.
"""

import asyncio

import pytest

from fintrack.models.group import BuiltInRole
from fintrack.services.backend import InMemoryBackend
from fintrack.session import SessionContext


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def owner(backend):
    return backend.add_user("ana@example.com", "Ana", "Silva")


@pytest.fixture
def member_user(backend):
    return backend.add_user("bruno@example.com", "Bruno")


@pytest.fixture
def outsider(backend):
    return backend.add_user("carla@example.com", "Carla")


@pytest.fixture
def group(backend, owner, member_user):
    group = backend.create_group(owner.id, "Casa", "Despesas da casa")
    membro = backend.role_named(group.id, BuiltInRole.MEMBER.value)
    asyncio.run(backend.add_member(group.id, member_user.id, membro.id))
    return group


@pytest.fixture
def session_as(backend):
    """Build a SessionContext for a user and make them the backend caller."""
    def _make(user):
        backend.sign_in(user.id)
        return SessionContext(backend, user=user)
    return _make
