"""
Backend Services Package

Abstract interfaces for the finance backend, a REST client, and an
in-memory implementation with the same contract.
"""

from fintrack.services.backend.interface import (
    AccountBackendInterface,
    AuditStorageInterface,
    BackendError,
    BackendInterface,
    GroupBackendInterface,
    NetworkFailure,
    NotFoundError,
    UserBackendInterface,
)
from fintrack.services.backend.memory import (
    InMemoryAuditStorage,
    InMemoryBackend,
)
from fintrack.services.backend.rest_client import RestBackendClient

__all__ = [
    # Interfaces
    "AccountBackendInterface",
    "AuditStorageInterface",
    "BackendInterface",
    "GroupBackendInterface",
    "UserBackendInterface",
    # Exceptions
    "BackendError",
    "NetworkFailure",
    "NotFoundError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryBackend",
    "RestBackendClient",
]
