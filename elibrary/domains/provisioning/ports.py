# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Collaborator interfaces consumed by the provisioning services.

Implementations must translate their own failures into the exceptions of
elibrary.domains.provisioning.exceptions:
- DuplicateError for unique constraint violations
- UpstreamError for transport, rate limit and server failures
"""

from abc import ABC, abstractmethod
from typing import Any

from elibrary.models.provisioning import (
    CredentialSummary,
    DomainRecord,
    OperatorSession,
    ProfileRecord,
    Role,
)


class AccountService(ABC):
    """External service holding authenticatable credentials.

    Every call is made with the operator session's bearer token.
    """

    @abstractmethod
    async def create_credential(
        self,
        session: OperatorSession,
        login_identifier: str,
        secret: str,
    ) -> str:
        """Create a credential and return its auth subject id."""

    @abstractmethod
    async def replace_secret(
        self,
        session: OperatorSession,
        auth_subject_id: str,
        secret: str,
    ) -> None:
        """Overwrite the secret of an existing credential."""

    @abstractmethod
    async def delete_credential(
        self,
        session: OperatorSession,
        auth_subject_id: str,
    ) -> None:
        """Delete a credential. May be refused by the service's privilege model."""

    @abstractmethod
    async def list_credentials(self, session: OperatorSession) -> list[CredentialSummary]:
        """List credentials visible to the operator."""


class RecordStore(ABC):
    """Relational store for role tables and the profile join table.

    The store is the sole arbiter of uniqueness for enrollment ids and
    login identifiers.
    """

    @abstractmethod
    async def create_domain_record(self, role: Role, data: dict[str, Any]) -> DomainRecord:
        """Insert a row into the role table for ``role``."""

    @abstractmethod
    async def get_domain_record(self, role: Role, record_id: str) -> DomainRecord | None:
        """Fetch a role table row by primary key."""

    @abstractmethod
    async def update_domain_record(
        self,
        role: Role,
        record_id: str,
        changes: dict[str, Any],
    ) -> DomainRecord:
        """Update a role table row. Raises RecordNotFoundError if absent."""

    @abstractmethod
    async def delete_domain_record(self, role: Role, record_id: str) -> None:
        """Delete a role table row. The linked profile is removed by cascade."""

    @abstractmethod
    async def list_domain_records(self, role: Role, institution_id: str) -> list[DomainRecord]:
        """List role table rows of an institution."""

    @abstractmethod
    async def create_profile(self, profile: ProfileRecord) -> ProfileRecord:
        """Insert a profile record."""

    @abstractmethod
    async def get_profile(self, profile_id: str) -> ProfileRecord | None:
        """Fetch a profile by id (the credential auth subject id)."""

    @abstractmethod
    async def get_profile_by_domain_record(
        self,
        role: Role,
        record_id: str,
    ) -> ProfileRecord | None:
        """Fetch the profile whose foreign key points at a role table row.

        This is the only supported way to go from a domain record to its
        credential: the domain record id is not the auth subject id.
        """

    @abstractmethod
    async def delete_profile(self, profile_id: str) -> None:
        """Delete a profile record."""

    @abstractmethod
    async def list_profiles(self, institution_id: str) -> list[ProfileRecord]:
        """List profile records of an institution."""


class SecretIssuer(ABC):
    """Produces a hashed representation of a freshly generated secret."""

    @abstractmethod
    async def issue(self, secret: str) -> str | None:
        """Return a hash of ``secret``, or None when issuance is unavailable.

        Returning None lets provisioning proceed with the plaintext secret
        handed to the Account Service, which hashes it on its own.
        """


class NullSecretIssuer(SecretIssuer):
    """Issuer used when pre-hashing is disabled."""

    async def issue(self, secret: str) -> str | None:
        return None
