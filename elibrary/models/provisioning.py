# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Models for identity provisioning.

An identity spans three physical records:
- Credential: held by the external Account Service (login identifier + secret)
- DomainRecord: role table row (students / staff) carrying business attributes
- ProfileRecord: join row whose id is the credential's auth subject id

Librarians have a Credential and a ProfileRecord but no DomainRecord.
"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator


class Role(str, Enum):
    """Provisionable identity roles."""

    STUDENT = "student"
    STAFF = "staff"
    LIBRARIAN = "librarian"

    @property
    def enrollment_prefix(self) -> str:
        """Prefix used for enrollment identifiers of this role."""
        return _ENROLLMENT_PREFIXES[self]

    @property
    def has_domain_record(self) -> bool:
        """Whether identities of this role own a row in a role table."""
        return self is not Role.LIBRARIAN


_ENROLLMENT_PREFIXES = {
    Role.STUDENT: "STU",
    Role.STAFF: "STF",
    Role.LIBRARIAN: "LIB",
}


class OperatorSession(BaseModel):
    """Authenticated operator context threaded through every operation.

    The bearer token authorizes calls to the Account Service on behalf of
    the operator. The institution is resolved from the operator's own
    profile when the session is established.
    """

    model_config = ConfigDict(frozen=True)

    operator_id: str
    institution_id: str
    role: Role
    access_token: SecretStr

    @property
    def can_manage_identities(self) -> bool:
        """Only librarians may provision, reset or remove identities."""
        return self.role is Role.LIBRARIAN


class IdentityAttributes(BaseModel):
    """Attributes of a candidate person.

    Blank strings are normalized to None so that "present" always means
    "has a non-empty value".
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str | None = None
    email: str | None = None
    parent_email: str | None = None
    phone: str | None = None
    grade_level: str | None = Field(
        default=None, validation_alias=AliasChoices("grade_level", "grade")
    )
    department: str | None = None
    position: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("email", "parent_email")
    @classmethod
    def lowercase_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value

    def contact_email(self, role: Role) -> str | None:
        """Email used as the login identifier for the given role.

        Students sign in with their parent's email when one is provided.
        """
        if role is Role.STUDENT:
            return self.parent_email or self.email
        return self.email

    def has_contact(self, role: Role) -> bool:
        """Whether an email or phone number is available for the role."""
        return bool(self.contact_email(role) or self.phone)


class DomainRecord(BaseModel):
    """Role table row (student or staff).

    The primary key is internal to the record store and is distinct from
    the credential's auth subject id.
    """

    id: str
    role: Role
    institution_id: str
    enrollment_id: str
    full_name: str
    email: str | None = None
    phone: str | None = None
    grade_level: str | None = Field(
        default=None, validation_alias=AliasChoices("grade_level", "grade")
    )
    department: str | None = None
    position: str | None = None
    password_hash: str | None = Field(default=None, repr=False)


class ProfileRecord(BaseModel):
    """Join row linking a credential to a role and a domain record."""

    id: str  # == credential auth subject id
    role: Role
    institution_id: str
    enrollment_id: str | None = None
    email: str | None = None
    full_name: str
    student_id: str | None = None
    staff_id: str | None = None

    @property
    def domain_record_id(self) -> str | None:
        """Foreign key to the role table row, if any."""
        return self.student_id or self.staff_id


class CredentialSummary(BaseModel):
    """Credential listing entry returned by the Account Service."""

    auth_subject_id: str
    login_identifier: str | None = None


class ProvisionResult(BaseModel):
    """Outcome of a successful provision or reset.

    The secret is handed to the caller exactly once for one-time display;
    it is never stored by this system.
    """

    enrollment_id: str | None
    secret: SecretStr
    auth_subject_id: str
    domain_record_id: str | None = None
    login_identifier: str | None = None


class DeprovisionResult(BaseModel):
    """Outcome of an administrative identity removal."""

    domain_record_id: str
    auth_subject_id: str | None = None
    credential_removed: bool = False


class ReconciliationReport(BaseModel):
    """Orphans found by a reconciliation sweep."""

    orphaned_credentials: list[CredentialSummary] = Field(default_factory=list)
    orphaned_domain_records: list[DomainRecord] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        """True when no orphans were found."""
        return not self.orphaned_credentials and not self.orphaned_domain_records
