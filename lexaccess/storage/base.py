"""
Storage abstraction layer.

All persistence goes through these interfaces. Services depend on the
repositories below and never touch the database directly, so the backing
relational store (SQLite in development, PostgreSQL in production) can be
swapped without changing application code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from lexaccess.core.models import AccessGrant, Profile, VerificationDocument


class DuplicateKeyError(Exception):
    """A write violated a uniqueness constraint."""
    pass


class MissingReferenceError(Exception):
    """A write referenced a row that does not exist."""
    pass


# =============================================================================
# Repository Interfaces
# =============================================================================


class ProfileRepository(ABC):
    """
    Storage for principals and their verification documents.

    Implementation: relational table with a unique email column.
    """

    @abstractmethod
    async def get(self, user_id: str) -> Profile | None:
        """Get a profile by ID."""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Profile | None:
        """Get a profile by exact email as stored."""
        pass

    @abstractmethod
    async def create(self, profile: Profile) -> Profile:
        """Insert a profile. Raises DuplicateKeyError on a taken email."""
        pass

    @abstractmethod
    async def update(self, user_id: str, updates: dict[str, Any]) -> Profile | None:
        """Partial update. Returns the updated profile, None if absent."""
        pass

    @abstractmethod
    async def list_documents(self, user_id: str) -> list[VerificationDocument]:
        """Verification documents for a profile."""
        pass

    @abstractmethod
    async def replace_documents(
        self,
        user_id: str,
        documents: list[VerificationDocument],
    ) -> None:
        """Atomically swap all verification documents for a profile."""
        pass

    @abstractmethod
    async def clear_documents(self, user_id: str) -> int:
        """Delete all verification documents, return how many were removed."""
        pass


class GrantRepository(ABC):
    """
    Storage for access grants.

    Implementations MUST enforce "at most one active grant per consultation"
    in the store itself (unique index or equivalent compare-and-swap), since
    several server processes may insert concurrently.
    """

    @abstractmethod
    async def get(self, grant_id: str) -> AccessGrant | None:
        pass

    @abstractmethod
    async def find_active(self, consultation_id: str) -> AccessGrant | None:
        """The grant flagged active for a consultation, expired or not."""
        pass

    @abstractmethod
    async def find_active_for_client(
        self,
        consultation_id: str,
        client_id: str,
    ) -> AccessGrant | None:
        """The active grant for a consultation held by a specific client."""
        pass

    @abstractmethod
    async def insert_active(
        self,
        grant: AccessGrant,
        supersede_id: str | None = None,
    ) -> AccessGrant:
        """
        Insert an active grant in one transaction.

        If `supersede_id` is given, that grant is deactivated first.
        Raises DuplicateKeyError if another active grant already holds the
        consultation, and MissingReferenceError if the client or advocate
        has no profile.
        """
        pass


class Database(ABC):
    """Connection lifecycle for the backing store."""

    @abstractmethod
    async def connect(self) -> None:
        """Open connections and make sure the schema exists."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Initialize once at app startup with appropriate implementations.
    Services receive this and use the interfaces without knowing
    the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    database: Database
    profiles: ProfileRepository
    grants: GrantRepository
