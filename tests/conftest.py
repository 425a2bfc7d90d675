# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Operator sessions
- Provisioning settings
- In-memory Account Service and Record Store with failure injection
"""

import asyncio
import itertools
from typing import Any

import pytest

from elibrary.core.config.settings import ProvisioningSettings
from elibrary.domains.provisioning.exceptions import (
    ENROLLMENT_ID,
    LOGIN_IDENTIFIER,
    DuplicateError,
    RecordNotFoundError,
    UpstreamError,
)
from elibrary.domains.provisioning.ports import AccountService, RecordStore, SecretIssuer
from elibrary.models.provisioning import (
    CredentialSummary,
    DomainRecord,
    OperatorSession,
    ProfileRecord,
    Role,
)

INSTITUTION_ID = "550e8400-e29b-41d4-a716-446655440000"


# =============================================================================
# In-memory collaborators
# =============================================================================


class FailureInjector:
    """Queues of exceptions and delays keyed by method name."""

    def __init__(self) -> None:
        self.failures: dict[str, list[Exception]] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []

    def fail(self, method: str, *errors: Exception) -> None:
        """Raise each error on successive calls of ``method``."""
        self.failures.setdefault(method, []).extend(errors)

    def delay(self, method: str, seconds: float) -> None:
        """Make every call of ``method`` sleep first."""
        self.delays[method] = seconds

    async def enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.delays:
            await asyncio.sleep(self.delays[method])
        queue = self.failures.get(method)
        if queue:
            raise queue.pop(0)


class InMemoryAccountService(FailureInjector, AccountService):
    """Account Service keeping credentials in a dict.

    ``secrets`` is exposed so tests can compare issued passwords; a real
    Account Service never returns them.
    """

    def __init__(self) -> None:
        super().__init__()
        self.credentials: dict[str, str] = {}
        self.secrets: dict[str, str] = {}
        self._ids = itertools.count(1)

    async def create_credential(
        self,
        session: OperatorSession,
        login_identifier: str,
        secret: str,
    ) -> str:
        await self.enter("create_credential")
        if login_identifier in self.credentials.values():
            raise DuplicateError(
                f"A user with this email address has already been registered: {login_identifier}",
                field=LOGIN_IDENTIFIER,
            )
        subject_id = f"auth-{next(self._ids)}"
        self.credentials[subject_id] = login_identifier
        self.secrets[subject_id] = secret
        return subject_id

    async def replace_secret(
        self,
        session: OperatorSession,
        auth_subject_id: str,
        secret: str,
    ) -> None:
        await self.enter("replace_secret")
        if auth_subject_id not in self.credentials:
            raise UpstreamError("User not found", service="account_service", status_code=404)
        self.secrets[auth_subject_id] = secret

    async def delete_credential(self, session: OperatorSession, auth_subject_id: str) -> None:
        await self.enter("delete_credential")
        self.credentials.pop(auth_subject_id, None)
        self.secrets.pop(auth_subject_id, None)

    async def list_credentials(self, session: OperatorSession) -> list[CredentialSummary]:
        await self.enter("list_credentials")
        return [
            CredentialSummary(auth_subject_id=subject_id, login_identifier=login)
            for subject_id, login in self.credentials.items()
        ]


class InMemoryRecordStore(FailureInjector, RecordStore):
    """Record store enforcing the same unique constraints as the SQL schema."""

    def __init__(self) -> None:
        super().__init__()
        self.domain_records: dict[Role, dict[str, DomainRecord]] = {
            Role.STUDENT: {},
            Role.STAFF: {},
        }
        self.profiles: dict[str, ProfileRecord] = {}
        self.taken_enrollment_ids: set[str] = set()
        self._ids = itertools.count(1)

    async def create_domain_record(self, role: Role, data: dict[str, Any]) -> DomainRecord:
        await self.enter("create_domain_record")
        enrollment_id = data["enrollment_id"]
        table = self.domain_records[role]
        if enrollment_id in self.taken_enrollment_ids or any(
            record.enrollment_id == enrollment_id
            and record.institution_id == data["institution_id"]
            for record in table.values()
        ):
            raise DuplicateError(f"Enrollment id {enrollment_id} exists", field=ENROLLMENT_ID)
        record = DomainRecord(id=f"{role.value}-{next(self._ids)}", role=role, **data)
        table[record.id] = record
        return record

    async def get_domain_record(self, role: Role, record_id: str) -> DomainRecord | None:
        await self.enter("get_domain_record")
        return self.domain_records[role].get(record_id)

    async def update_domain_record(
        self,
        role: Role,
        record_id: str,
        changes: dict[str, Any],
    ) -> DomainRecord:
        await self.enter("update_domain_record")
        current = self.domain_records[role].get(record_id)
        if current is None:
            raise RecordNotFoundError(f"No record {record_id}", record_id=record_id)
        updated = current.model_copy(update=changes)
        self.domain_records[role][record_id] = updated
        return updated

    async def delete_domain_record(self, role: Role, record_id: str) -> None:
        await self.enter("delete_domain_record")
        self.domain_records[role].pop(record_id, None)
        for profile_id, profile in list(self.profiles.items()):
            if profile.domain_record_id == record_id:
                del self.profiles[profile_id]

    async def list_domain_records(self, role: Role, institution_id: str) -> list[DomainRecord]:
        await self.enter("list_domain_records")
        return [
            record
            for record in self.domain_records[role].values()
            if record.institution_id == institution_id
        ]

    async def create_profile(self, profile: ProfileRecord) -> ProfileRecord:
        await self.enter("create_profile")
        for existing in self.profiles.values():
            if profile.email and existing.email == profile.email:
                raise DuplicateError(f"Email {profile.email} exists", field=LOGIN_IDENTIFIER)
            if (
                profile.enrollment_id
                and existing.enrollment_id == profile.enrollment_id
                and existing.institution_id == profile.institution_id
            ):
                raise DuplicateError(
                    f"Enrollment id {profile.enrollment_id} exists", field=ENROLLMENT_ID
                )
        self.profiles[profile.id] = profile
        return profile

    async def get_profile(self, profile_id: str) -> ProfileRecord | None:
        await self.enter("get_profile")
        return self.profiles.get(profile_id)

    async def get_profile_by_domain_record(
        self,
        role: Role,
        record_id: str,
    ) -> ProfileRecord | None:
        await self.enter("get_profile_by_domain_record")
        for profile in self.profiles.values():
            if profile.role is role and profile.domain_record_id == record_id:
                return profile
        return None

    async def delete_profile(self, profile_id: str) -> None:
        await self.enter("delete_profile")
        self.profiles.pop(profile_id, None)

    async def list_profiles(self, institution_id: str) -> list[ProfileRecord]:
        await self.enter("list_profiles")
        return [
            profile
            for profile in self.profiles.values()
            if profile.institution_id == institution_id
        ]


class StaticSecretIssuer(SecretIssuer):
    """Issuer returning a fixed hash and remembering what it hashed."""

    def __init__(self, password_hash: str | None = "$2b$12$static") -> None:
        self.password_hash = password_hash
        self.issued: list[str] = []

    async def issue(self, secret: str) -> str | None:
        self.issued.append(secret)
        return self.password_hash


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def institution_id() -> str:
    """Provide the institution of the test operator."""
    return INSTITUTION_ID


@pytest.fixture
def librarian_session() -> OperatorSession:
    """Provide an operator session allowed to manage identities."""
    return OperatorSession(
        operator_id="550e8400-e29b-41d4-a716-446655440010",
        institution_id=INSTITUTION_ID,
        role=Role.LIBRARIAN,
        access_token="operator-access-token",  # type: ignore[arg-type]
    )


@pytest.fixture
def staff_session() -> OperatorSession:
    """Provide an operator session without identity management privilege."""
    return OperatorSession(
        operator_id="550e8400-e29b-41d4-a716-446655440011",
        institution_id=INSTITUTION_ID,
        role=Role.STAFF,
        access_token="staff-access-token",  # type: ignore[arg-type]
    )


@pytest.fixture
def provisioning_settings() -> ProvisioningSettings:
    """Provide provisioning settings with a short step timeout."""
    return ProvisioningSettings(step_timeout=1.0)


@pytest.fixture
def account_service() -> InMemoryAccountService:
    """Provide an in-memory Account Service."""
    return InMemoryAccountService()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    """Provide an in-memory Record Store."""
    return InMemoryRecordStore()


@pytest.fixture
def sample_student() -> dict[str, Any]:
    """Provide sample student attributes."""
    return {
        "full_name": "Ada",
        "grade": "Grade 7",
        "parent_email": "a@b.com",
    }


@pytest.fixture
def sample_staff() -> dict[str, Any]:
    """Provide sample staff attributes."""
    return {
        "full_name": "Mary Manager",
        "email": "mary.manager@example.com",
        "phone": "+2290153077528",
        "department": "Administration",
        "position": "Librarian",
    }


@pytest.fixture
def secret_issuer() -> StaticSecretIssuer:
    """Provide a secret issuer returning a fixed hash."""
    return StaticSecretIssuer()
