"""Persistence layer (credential storage)."""

from releasehub.infrastructure.persistence.credential_store import (
    FileCredentialStore,
    InMemoryCredentialStore,
)

__all__ = ["FileCredentialStore", "InMemoryCredentialStore"]
