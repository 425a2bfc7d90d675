# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the record store.

Example:
    from elibrary.infrastructure.database import (
        init_database,
        get_sessionmaker,
        SqlRecordStore,
    )

    await init_database(settings)
    store = SqlRecordStore(get_sessionmaker())
"""

from elibrary.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    create_schema,
    get_engine,
    get_sessionmaker,
    init_database,
)
from elibrary.infrastructure.database.models import Base, Staff, Student, UserProfile
from elibrary.infrastructure.database.record_store import SqlRecordStore

__all__ = [
    # Connection
    "DatabaseError",
    "init_database",
    "close_database",
    "get_engine",
    "get_sessionmaker",
    "create_schema",
    # Models
    "Base",
    "Student",
    "Staff",
    "UserProfile",
    # Store
    "SqlRecordStore",
]
