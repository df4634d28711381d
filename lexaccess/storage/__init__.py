"""
Storage abstractions.

Integration points:
- ProfileRepository → profiles + vkyc_documents tables
- GrantRepository → access_grants table (partial unique index on active grants)
- Database → engine lifecycle (SQLite locally, PostgreSQL in production)
"""

from lexaccess.storage.base import (
    Database,
    DuplicateKeyError,
    GrantRepository,
    MissingReferenceError,
    ProfileRepository,
    StorageProvider,
)
from lexaccess.storage.sql import create_memory_storage, create_sql_storage

__all__ = [
    "Database",
    "DuplicateKeyError",
    "GrantRepository",
    "MissingReferenceError",
    "ProfileRepository",
    "StorageProvider",
    "create_memory_storage",
    "create_sql_storage",
]
