"""Services package."""

from fintrack.services.backend import (
    AccountBackendInterface,
    AuditStorageInterface,
    BackendError,
    BackendInterface,
    GroupBackendInterface,
    InMemoryAuditStorage,
    InMemoryBackend,
    NetworkFailure,
    NotFoundError,
    RestBackendClient,
    UserBackendInterface,
)

__all__ = [
    "AccountBackendInterface",
    "AuditStorageInterface",
    "BackendError",
    "BackendInterface",
    "GroupBackendInterface",
    "InMemoryAuditStorage",
    "InMemoryBackend",
    "NetworkFailure",
    "NotFoundError",
    "RestBackendClient",
    "UserBackendInterface",
]
