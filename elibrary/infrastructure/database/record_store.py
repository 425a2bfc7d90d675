# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of the provisioning record store.

Each operation runs in its own session and commits on success, so a saga
step is durable (and visible to compensation) as soon as it returns.
Unique constraint violations become DuplicateError; every other driver
failure becomes UpstreamError.

Example:
    >>> store = SqlRecordStore(get_sessionmaker())
    >>> record = await store.create_domain_record(Role.STUDENT, data)
    >>> profile = await store.get_profile_by_domain_record(Role.STUDENT, record.id)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from elibrary.domains.provisioning.exceptions import (
    ENROLLMENT_ID,
    LOGIN_IDENTIFIER,
    DuplicateError,
    RecordNotFoundError,
    UpstreamError,
)
from elibrary.domains.provisioning.ports import RecordStore
from elibrary.infrastructure.database.models import Staff, Student, UserProfile, new_id
from elibrary.models.provisioning import DomainRecord, ProfileRecord, Role

logger = logging.getLogger(__name__)

SERVICE_NAME = "record_store"

ROLE_TABLES: dict[Role, type[Student] | type[Staff]] = {
    Role.STUDENT: Student,
    Role.STAFF: Staff,
}

_DOMAIN_FIELDS = (
    "institution_id",
    "enrollment_id",
    "full_name",
    "email",
    "phone",
    "password_hash",
)
_ROLE_FIELDS = {
    Role.STUDENT: ("grade_level",),
    Role.STAFF: ("department", "position"),
}


def _model_for(role: Role) -> type[Student] | type[Staff]:
    try:
        return ROLE_TABLES[role]
    except KeyError:
        raise ValueError(f"{role.value} identities have no role table") from None


def _profile_fk(role: Role):
    return UserProfile.student_id if role is Role.STUDENT else UserProfile.staff_id


def _to_domain_record(role: Role, row: Student | Staff) -> DomainRecord:
    data = {name: getattr(row, name) for name in _DOMAIN_FIELDS + _ROLE_FIELDS[role]}
    return DomainRecord(id=row.id, role=role, **data)


def _to_profile(row: UserProfile) -> ProfileRecord:
    return ProfileRecord(
        id=row.id,
        role=Role(row.role),
        institution_id=row.institution_id,
        enrollment_id=row.enrollment_id,
        email=row.email,
        full_name=row.full_name,
        student_id=row.student_id,
        staff_id=row.staff_id,
    )


def _translate_integrity_error(e: IntegrityError, operation: str) -> Exception:
    detail = str(e.orig) if e.orig is not None else str(e)
    if "enrollment_id" in detail:
        return DuplicateError(f"Enrollment id already exists ({operation})", field=ENROLLMENT_ID)
    if "email" in detail:
        return DuplicateError(f"Login identifier already exists ({operation})", field=LOGIN_IDENTIFIER)
    return UpstreamError(
        f"Record store rejected {operation}: {detail}",
        service=SERVICE_NAME,
    )


class SqlRecordStore(RecordStore):
    """Record store backed by PostgreSQL.

    Attributes:
        _sessionmaker: Factory for per-operation sessions.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning("Integrity error during %s: %s", operation, str(e.orig))
                raise _translate_integrity_error(e, operation) from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Record store failure during %s: %s", operation, str(e))
                raise UpstreamError(
                    f"Record store failure during {operation}",
                    service=SERVICE_NAME,
                ) from e

    # =========================================================================
    # Role tables
    # =========================================================================

    async def create_domain_record(self, role: Role, data: dict[str, Any]) -> DomainRecord:
        model = _model_for(role)
        allowed = _DOMAIN_FIELDS + _ROLE_FIELDS[role]
        row = model(id=new_id(), **{key: data.get(key) for key in allowed})
        async with self._session(f"create {role.value} record") as session:
            session.add(row)
            await session.flush()
        return _to_domain_record(role, row)

    async def get_domain_record(self, role: Role, record_id: str) -> DomainRecord | None:
        model = _model_for(role)
        async with self._session(f"get {role.value} record") as session:
            result = await session.execute(select(model).where(model.id == record_id))
            row = result.scalar_one_or_none()
        return _to_domain_record(role, row) if row is not None else None

    async def update_domain_record(
        self,
        role: Role,
        record_id: str,
        changes: dict[str, Any],
    ) -> DomainRecord:
        model = _model_for(role)
        async with self._session(f"update {role.value} record") as session:
            result = await session.execute(select(model).where(model.id == record_id))
            row = result.scalar_one_or_none()
            if row is None:
                raise RecordNotFoundError(
                    f"No {role.value} record {record_id}", record_id=record_id
                )
            for key, value in changes.items():
                setattr(row, key, value)
            await session.flush()
        return _to_domain_record(role, row)

    async def delete_domain_record(self, role: Role, record_id: str) -> None:
        model = _model_for(role)
        async with self._session(f"delete {role.value} record") as session:
            # Linked profile is removed in the same transaction as the row
            await session.execute(delete(UserProfile).where(_profile_fk(role) == record_id))
            await session.execute(delete(model).where(model.id == record_id))

    async def list_domain_records(self, role: Role, institution_id: str) -> list[DomainRecord]:
        model = _model_for(role)
        async with self._session(f"list {role.value} records") as session:
            result = await session.execute(
                select(model).where(model.institution_id == institution_id)
            )
            rows = result.scalars().all()
        return [_to_domain_record(role, row) for row in rows]

    # =========================================================================
    # Profiles
    # =========================================================================

    async def create_profile(self, profile: ProfileRecord) -> ProfileRecord:
        row = UserProfile(
            id=profile.id,
            role=profile.role.value,
            institution_id=profile.institution_id,
            enrollment_id=profile.enrollment_id,
            email=profile.email,
            full_name=profile.full_name,
            student_id=profile.student_id,
            staff_id=profile.staff_id,
        )
        async with self._session("create profile") as session:
            session.add(row)
            await session.flush()
        return _to_profile(row)

    async def get_profile(self, profile_id: str) -> ProfileRecord | None:
        async with self._session("get profile") as session:
            result = await session.execute(select(UserProfile).where(UserProfile.id == profile_id))
            row = result.scalar_one_or_none()
        return _to_profile(row) if row is not None else None

    async def get_profile_by_domain_record(
        self,
        role: Role,
        record_id: str,
    ) -> ProfileRecord | None:
        _model_for(role)
        async with self._session("get profile by record") as session:
            result = await session.execute(
                select(UserProfile).where(_profile_fk(role) == record_id)
            )
            row = result.scalar_one_or_none()
        return _to_profile(row) if row is not None else None

    async def delete_profile(self, profile_id: str) -> None:
        async with self._session("delete profile") as session:
            await session.execute(delete(UserProfile).where(UserProfile.id == profile_id))

    async def list_profiles(self, institution_id: str) -> list[ProfileRecord]:
        async with self._session("list profiles") as session:
            result = await session.execute(
                select(UserProfile).where(UserProfile.institution_id == institution_id)
            )
            rows = result.scalars().all()
        return [_to_profile(row) for row in rows]
