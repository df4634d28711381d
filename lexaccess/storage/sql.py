"""
Relational storage implementations (SQLAlchemy asyncio).

Development and tests run on SQLite through aiosqlite; production points
DATABASE_URL at PostgreSQL (postgresql+asyncpg://...). The code is the same.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator

from sqlalchemy import delete, event, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from lexaccess.core.models import AccessGrant, Profile, VerificationDocument
from lexaccess.core.utils import utc_now
from lexaccess.storage.base import (
    Database,
    DuplicateKeyError,
    GrantRepository,
    MissingReferenceError,
    ProfileRepository,
    StorageProvider,
)
from lexaccess.storage.tables import (
    AccessGrantRow,
    Base,
    ProfileRow,
    VerificationDocumentRow,
)

logger = logging.getLogger(__name__)


def _column_values(model: Any, exclude: set[str] | None = None) -> dict[str, Any]:
    """Dump a domain model to plain column values (enums -> their value)."""
    data = model.model_dump(exclude=exclude)
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


# =============================================================================
# Database
# =============================================================================


class SqlDatabase(Database):
    """Owns the engine and hands out sessions."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        kwargs: dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
                # One shared connection, otherwise every session sees an empty DB
                kwargs["poolclass"] = StaticPool
        self.engine: AsyncEngine = create_async_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._sessions = async_sessionmaker(self.engine, expire_on_commit=False)

    async def connect(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready")

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._sessions() as session:
            yield session


# SQLSTATE for foreign_key_violation (PostgreSQL); SQLite only reports a message
FOREIGN_KEY_VIOLATION = "23503"


def _is_foreign_key_violation(error: IntegrityError) -> bool:
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == FOREIGN_KEY_VIOLATION:
        return True
    return "FOREIGN KEY constraint failed" in str(orig)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# =============================================================================
# Profiles
# =============================================================================


class SqlProfileRepository(ProfileRepository):
    """Profiles and verification documents in relational tables."""

    def __init__(self, db: SqlDatabase):
        self._db = db

    async def get(self, user_id: str) -> Profile | None:
        async with self._db.session() as session:
            row = await session.get(ProfileRow, user_id)
            return Profile.model_validate(row) if row else None

    async def get_by_email(self, email: str) -> Profile | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(ProfileRow).where(ProfileRow.email == email)
            )
            row = result.scalar_one_or_none()
            return Profile.model_validate(row) if row else None

    async def create(self, profile: Profile) -> Profile:
        async with self._db.session() as session:
            try:
                async with session.begin():
                    session.add(ProfileRow(**_column_values(profile)))
            except IntegrityError as e:
                raise DuplicateKeyError(f"profile {profile.id} conflicts with an existing row") from e
        return profile

    async def update(self, user_id: str, updates: dict[str, Any]) -> Profile | None:
        values = {k: (v.value if isinstance(v, Enum) else v) for k, v in updates.items()}
        values["updated_at"] = utc_now()
        async with self._db.session() as session:
            try:
                async with session.begin():
                    row = await session.get(ProfileRow, user_id)
                    if row is None:
                        return None
                    for key, value in values.items():
                        setattr(row, key, value)
            except IntegrityError as e:
                raise DuplicateKeyError(f"update of {user_id} conflicts with an existing row") from e
            return Profile.model_validate(row)

    async def list_documents(self, user_id: str) -> list[VerificationDocument]:
        async with self._db.session() as session:
            result = await session.execute(
                select(VerificationDocumentRow)
                .where(VerificationDocumentRow.user_id == user_id)
                .order_by(VerificationDocumentRow.created_at)
            )
            return [VerificationDocument.model_validate(r) for r in result.scalars()]

    async def replace_documents(
        self,
        user_id: str,
        documents: list[VerificationDocument],
    ) -> None:
        async with self._db.session() as session:
            async with session.begin():
                await session.execute(
                    delete(VerificationDocumentRow).where(VerificationDocumentRow.user_id == user_id)
                )
                session.add_all(VerificationDocumentRow(**_column_values(d)) for d in documents)

    async def clear_documents(self, user_id: str) -> int:
        async with self._db.session() as session:
            async with session.begin():
                count = await session.scalar(
                    select(func.count())
                    .select_from(VerificationDocumentRow)
                    .where(VerificationDocumentRow.user_id == user_id)
                )
                await session.execute(
                    delete(VerificationDocumentRow).where(VerificationDocumentRow.user_id == user_id)
                )
        return count or 0


# =============================================================================
# Access Grants
# =============================================================================


class SqlGrantRepository(GrantRepository):
    """Access grants guarded by a partial unique index."""

    def __init__(self, db: SqlDatabase):
        self._db = db

    async def get(self, grant_id: str) -> AccessGrant | None:
        async with self._db.session() as session:
            row = await session.get(AccessGrantRow, grant_id)
            return AccessGrant.model_validate(row) if row else None

    async def find_active(self, consultation_id: str) -> AccessGrant | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(AccessGrantRow).where(
                    AccessGrantRow.consultation_id == consultation_id,
                    AccessGrantRow.is_active.is_(True),
                )
            )
            row = result.scalar_one_or_none()
            return AccessGrant.model_validate(row) if row else None

    async def find_active_for_client(
        self,
        consultation_id: str,
        client_id: str,
    ) -> AccessGrant | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(AccessGrantRow).where(
                    AccessGrantRow.consultation_id == consultation_id,
                    AccessGrantRow.client_id == client_id,
                    AccessGrantRow.is_active.is_(True),
                )
            )
            row = result.scalar_one_or_none()
            return AccessGrant.model_validate(row) if row else None

    async def insert_active(
        self,
        grant: AccessGrant,
        supersede_id: str | None = None,
    ) -> AccessGrant:
        async with self._db.session() as session:
            try:
                async with session.begin():
                    if supersede_id:
                        await session.execute(
                            update(AccessGrantRow)
                            .where(
                                AccessGrantRow.id == supersede_id,
                                AccessGrantRow.is_active.is_(True),
                            )
                            .values(is_active=False)
                        )
                    session.add(AccessGrantRow(**_column_values(grant)))
            except IntegrityError as e:
                if _is_foreign_key_violation(e):
                    raise MissingReferenceError(
                        f"grant on {grant.consultation_id} names an unknown client or advocate"
                    ) from e
                raise DuplicateKeyError(
                    f"consultation {grant.consultation_id} already has an active grant"
                ) from e
        return grant


# =============================================================================
# Factory
# =============================================================================


def create_sql_storage(url: str, echo: bool = False) -> StorageProvider:
    """Create a StorageProvider backed by a relational database."""
    db = SqlDatabase(url, echo=echo)
    return StorageProvider(
        database=db,
        profiles=SqlProfileRepository(db),
        grants=SqlGrantRepository(db),
    )


def create_memory_storage() -> StorageProvider:
    """In-memory SQLite, for tests and throwaway runs."""
    return create_sql_storage("sqlite+aiosqlite://")
