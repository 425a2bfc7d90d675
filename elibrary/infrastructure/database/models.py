# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for the record store.

Tables:
- students: role table for students
- staff: role table for staff members
- user_profiles: join table, primary key == credential auth subject id

Enrollment ids carry their role prefix, so a per-table unique constraint
on (institution_id, enrollment_id) makes them unique per institution and
prefix. Deleting a role table row cascades to its profile.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from elibrary.utils.datetime import utc_now


def new_id() -> str:
    """Generate a primary key for role table rows."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Declarative base for record store models."""

    pass


class TimestampMixin:
    """created_at / updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class Student(TimestampMixin, Base):
    """Student role table row."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("institution_id", "enrollment_id", name="uq_students_enrollment_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    institution_id: Mapped[str] = mapped_column(String(36), index=True)
    enrollment_id: Mapped[str] = mapped_column(String(32))
    full_name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))
    grade_level: Mapped[str | None] = mapped_column(String(64))
    password_hash: Mapped[str | None] = mapped_column(String(255))


class Staff(TimestampMixin, Base):
    """Staff role table row."""

    __tablename__ = "staff"
    __table_args__ = (
        UniqueConstraint("institution_id", "enrollment_id", name="uq_staff_enrollment_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    institution_id: Mapped[str] = mapped_column(String(36), index=True)
    enrollment_id: Mapped[str] = mapped_column(String(32))
    full_name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))
    department: Mapped[str | None] = mapped_column(String(128))
    position: Mapped[str | None] = mapped_column(String(128))
    password_hash: Mapped[str | None] = mapped_column(String(255))


class UserProfile(TimestampMixin, Base):
    """Profile join row linking a credential to a role table row."""

    __tablename__ = "user_profiles"
    __table_args__ = (
        UniqueConstraint("institution_id", "enrollment_id", name="uq_user_profiles_enrollment_id"),
        UniqueConstraint("email", name="uq_user_profiles_email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    role: Mapped[str] = mapped_column(String(16))
    institution_id: Mapped[str] = mapped_column(String(36), index=True)
    enrollment_id: Mapped[str | None] = mapped_column(String(32))
    email: Mapped[str | None] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(255))
    student_id: Mapped[str | None] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), unique=True
    )
    staff_id: Mapped[str | None] = mapped_column(
        ForeignKey("staff.id", ondelete="CASCADE"), unique=True
    )
