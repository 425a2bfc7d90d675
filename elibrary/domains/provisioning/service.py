# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity provisioning service.

Turns a candidate person into a login-capable identity by running a saga
against the external collaborators, strictly in this order:

1. Credential (Account Service) - nothing to roll back if it fails
2. Domain record (role table) - skipped for librarians
3. Profile record (join table, id == credential auth subject id)

A failure after step 1 leaves the credential orphaned: the Account
Service's privilege model does not let this system delete it reliably.
The domain record is compensated (deleted) before the error is raised, and
the failure is reported as PartialProvisioningError on a dedicated logger.

Example:
    >>> service = ProvisioningService(accounts, records, settings.provisioning)
    >>> result = await service.provision(
    ...     session,
    ...     Role.STUDENT,
    ...     {"full_name": "Ada", "grade_level": "Grade 7", "parent_email": "a@b.com"},
    ... )
    >>> result.enrollment_id
    'STU53077528042'
"""

import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from elibrary.core.config.settings import ProvisioningSettings
from elibrary.domains.provisioning.exceptions import (
    DuplicateError,
    DuplicateSubmissionError,
    OperatorNotAuthorizedError,
    PartialProvisioningError,
    ProvisioningError,
    UpstreamError,
    ValidationError,
)
from elibrary.domains.provisioning.generator import (
    generate_enrollment_id,
    generate_secret,
)
from elibrary.domains.provisioning.ports import (
    AccountService,
    NullSecretIssuer,
    RecordStore,
    SecretIssuer,
)
from elibrary.domains.provisioning.saga import ProvisioningSaga
from elibrary.models.provisioning import (
    DomainRecord,
    IdentityAttributes,
    OperatorSession,
    ProfileRecord,
    ProvisionResult,
    Role,
)
from elibrary.utils.logging import PARTIAL_PROVISIONING_LOGGER

logger = logging.getLogger(__name__)
partial_logger = logging.getLogger(PARTIAL_PROVISIONING_LOGGER)

STEP_CREDENTIAL = "credential"
STEP_DOMAIN_RECORD = "domain_record"
STEP_PROFILE_RECORD = "profile_record"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[0-9]{8,15}$")
_PHONE_SEPARATORS_RE = re.compile(r"[\s\-().]")


def missing_fields(role: Role, attributes: IdentityAttributes) -> list[str]:
    """List required attributes absent for the role.

    - student: full_name, grade_level, and a parent email / email or phone
    - staff: full_name, and an email or phone
    - librarian: full_name and email

    Args:
        role: Identity role.
        attributes: Candidate attributes.

    Returns:
        Names of the missing fields, empty when the candidate is complete.
    """
    missing: list[str] = []
    if not attributes.full_name:
        missing.append("full_name")
    if role is Role.STUDENT:
        if not attributes.grade_level:
            missing.append("grade_level")
        if not attributes.has_contact(role):
            missing.append("parent_email or phone")
    elif role is Role.STAFF:
        if not attributes.has_contact(role):
            missing.append("email or phone")
    elif not attributes.email:
        missing.append("email")
    return missing


def validate_identity(role: Role, attributes: IdentityAttributes) -> None:
    """Validate a candidate without contacting any external service.

    Raises:
        ValidationError: If a required field is missing or a contact value
            is malformed.
    """
    missing = missing_fields(role, attributes)
    if missing:
        raise ValidationError(
            f"missing required fields: {', '.join(missing)}",
            fields=missing,
        )

    for field_name in ("email", "parent_email"):
        value = getattr(attributes, field_name)
        if value and not _EMAIL_RE.match(value):
            raise ValidationError(f"invalid {field_name}: {value}", fields=[field_name])

    if attributes.phone:
        cleaned = _PHONE_SEPARATORS_RE.sub("", attributes.phone)
        if not _PHONE_RE.match(cleaned):
            raise ValidationError(f"invalid phone: {attributes.phone}", fields=["phone"])


def ensure_operator(session: OperatorSession) -> None:
    """Raise OperatorNotAuthorizedError unless the operator manages identities."""
    if not session.can_manage_identities:
        raise OperatorNotAuthorizedError(
            f"Operator {session.operator_id} with role {session.role.value} "
            "cannot manage identities"
        )


class SubmissionLatch:
    """Same-process guard against double submission of one form.

    Not a distributed lock: the operator UI is single-operator-per-session.
    """

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def is_held(self, key: str) -> bool:
        return key in self._in_flight

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the latch for ``key`` for the duration of the block.

        Raises:
            DuplicateSubmissionError: If ``key`` is already held.
        """
        if key in self._in_flight:
            raise DuplicateSubmissionError(f"Submission {key} is already in progress")
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)


class ProvisioningService:
    """Service running the identity provisioning saga.

    Attributes:
        _accounts: Account Service holding credentials.
        _records: Record store for role tables and profiles.
        _settings: Provisioning behaviour settings.
        _issuer: Secret issuer producing the stored password hash.
        _latch: Duplicate-submit guard.
    """

    def __init__(
        self,
        account_service: AccountService,
        record_store: RecordStore,
        settings: ProvisioningSettings,
        secret_issuer: SecretIssuer | None = None,
        latch: SubmissionLatch | None = None,
    ) -> None:
        """Initialize the provisioning service.

        Args:
            account_service: Account Service adapter.
            record_store: Record store adapter.
            settings: Provisioning settings.
            secret_issuer: Optional pre-hashing issuer.
            latch: Optional shared duplicate-submit latch.
        """
        self._accounts = account_service
        self._records = record_store
        self._settings = settings
        self._issuer = secret_issuer or NullSecretIssuer()
        self._latch = latch or SubmissionLatch()

    async def provision(
        self,
        session: OperatorSession,
        role: Role | str,
        attributes: IdentityAttributes | dict[str, Any],
        submission_key: str | None = None,
    ) -> ProvisionResult:
        """Provision one identity.

        Args:
            session: Operator session authorizing the calls.
            role: Identity role.
            attributes: Candidate attributes.
            submission_key: Identifies the form submission for the
                duplicate-submit latch. Defaults to role + login identifier
                (or name when there is no email).

        Returns:
            ProvisionResult carrying the one-time secret.

        Raises:
            OperatorNotAuthorizedError: If the operator cannot manage identities.
            ValidationError: If attributes are incomplete or malformed.
            DuplicateSubmissionError: If the same submission is in flight.
            DuplicateError: If the login identifier already exists.
            UpstreamError: If credential creation failed.
            PartialProvisioningError: If a later step failed after the
                credential was created.
        """
        ensure_operator(session)
        role = Role(role)
        if not isinstance(attributes, IdentityAttributes):
            attributes = IdentityAttributes.model_validate(attributes)
        validate_identity(role, attributes)

        key = submission_key or self._submission_key(role, attributes)
        async with self._latch.hold(key):
            return await self._run_saga(session, role, attributes)

    def _submission_key(self, role: Role, attributes: IdentityAttributes) -> str:
        identity = attributes.contact_email(role) or (attributes.full_name or "").lower()
        return f"{role.value}:{identity}"

    async def _run_saga(
        self,
        session: OperatorSession,
        role: Role,
        attributes: IdentityAttributes,
    ) -> ProvisionResult:
        enrollment_id = generate_enrollment_id(role)
        secret = generate_secret(self._settings.secret_length)
        password_hash = await self._issuer.issue(secret) if role.has_domain_record else None
        login_identifier = attributes.contact_email(role) or self._synthesize_login(enrollment_id)

        saga = ProvisioningSaga(f"{role.value}:{login_identifier}", self._settings.step_timeout)

        auth_subject_id = await saga.run_step(
            STEP_CREDENTIAL,
            lambda: self._accounts.create_credential(session, login_identifier, secret),
        )
        logger.info("Credential created for %s (%s)", login_identifier, role.value)

        attempts = self._settings.enrollment_id_attempts
        attempt = 0
        while True:
            attempt += 1
            try:
                record = await self._create_domain_record(
                    saga, session, role, attributes, enrollment_id, login_identifier, password_hash
                )
                await saga.run_step(
                    STEP_PROFILE_RECORD,
                    lambda: self._records.create_profile(
                        self._build_profile(
                            session, role, attributes, enrollment_id, auth_subject_id,
                            login_identifier, record,
                        )
                    ),
                )
            except DuplicateError as e:
                if not (e.retryable and attempt < attempts):
                    error = await self._fail(saga, role, auth_subject_id, e)
                    raise error from e
                failed_step = self._failed_step(saga, role)
                outcome = await saga.compensate(stop_at=STEP_CREDENTIAL)
                if outcome.uncompensated:
                    error = await self._fail(
                        saga,
                        role,
                        auth_subject_id,
                        e,
                        failed_step=failed_step,
                        compensated=outcome.compensated,
                        left_behind=outcome.uncompensated,
                    )
                    raise error from e
                logger.warning(
                    "Enrollment id %s already taken, regenerating (attempt %d/%d)",
                    enrollment_id,
                    attempt,
                    attempts,
                )
                enrollment_id = generate_enrollment_id(role)
                continue
            except ProvisioningError as e:
                error = await self._fail(saga, role, auth_subject_id, e)
                raise error from e

            logger.info(
                "Provisioned %s %s (subject %s)",
                role.value,
                enrollment_id,
                auth_subject_id,
            )
            return ProvisionResult(
                enrollment_id=enrollment_id,
                secret=secret,
                auth_subject_id=auth_subject_id,
                domain_record_id=record.id if record else None,
                login_identifier=login_identifier,
            )

    async def _create_domain_record(
        self,
        saga: ProvisioningSaga,
        session: OperatorSession,
        role: Role,
        attributes: IdentityAttributes,
        enrollment_id: str,
        login_identifier: str,
        password_hash: str | None,
    ) -> DomainRecord | None:
        if not role.has_domain_record:
            return None

        data: dict[str, Any] = {
            "institution_id": session.institution_id,
            "enrollment_id": enrollment_id,
            "full_name": attributes.full_name,
            "email": login_identifier,
            "phone": attributes.phone,
            "password_hash": password_hash,
        }
        if role is Role.STUDENT:
            data["grade_level"] = attributes.grade_level
        else:
            data["department"] = attributes.department
            data["position"] = attributes.position

        return await saga.run_step(
            STEP_DOMAIN_RECORD,
            lambda: self._records.create_domain_record(role, data),
            compensation=lambda record: self._records.delete_domain_record(role, record.id),
        )

    def _build_profile(
        self,
        session: OperatorSession,
        role: Role,
        attributes: IdentityAttributes,
        enrollment_id: str,
        auth_subject_id: str,
        login_identifier: str,
        record: DomainRecord | None,
    ) -> ProfileRecord:
        return ProfileRecord(
            id=auth_subject_id,
            role=role,
            institution_id=session.institution_id,
            enrollment_id=enrollment_id,
            email=login_identifier,
            full_name=attributes.full_name or "",
            student_id=record.id if record and role is Role.STUDENT else None,
            staff_id=record.id if record and role is Role.STAFF else None,
        )

    def _synthesize_login(self, enrollment_id: str) -> str:
        return f"{enrollment_id.lower()}@{self._settings.synthesized_email_domain}"

    @staticmethod
    def _failed_step(saga: ProvisioningSaga, role: Role) -> str:
        if role.has_domain_record and STEP_DOMAIN_RECORD not in saga.completed_steps:
            return STEP_DOMAIN_RECORD
        return STEP_PROFILE_RECORD

    async def _fail(
        self,
        saga: ProvisioningSaga,
        role: Role,
        auth_subject_id: str,
        cause: ProvisioningError,
        failed_step: str | None = None,
        compensated: list[str] | None = None,
        left_behind: list[str] | None = None,
    ) -> PartialProvisioningError:
        """Compensate what can be undone and build the partial failure.

        A timed-out step may have taken effect, so nothing is compensated
        blindly; the attempt is flagged ambiguous for reconciliation.

        ``failed_step``, ``compensated`` and ``left_behind`` carry the result
        of a compensation pass the caller already ran; the remaining steps
        are compensated on top of it.
        """
        if failed_step is None:
            failed_step = self._failed_step(saga, role)
        compensated = list(compensated or [])
        left_behind = list(left_behind or [])

        ambiguous = isinstance(cause, UpstreamError) and cause.timed_out
        if ambiguous:
            left_behind.extend(reversed(saga.completed_steps))
        else:
            outcome = await saga.compensate()
            compensated.extend(outcome.compensated)
            left_behind.extend(outcome.uncompensated)

        error = PartialProvisioningError(
            f"Provisioning failed at {failed_step}: {cause.message}",
            auth_subject_id=auth_subject_id,
            failed_step=failed_step,
            compensated_steps=compensated,
            uncompensated_steps=left_behind,
            ambiguous=ambiguous,
        )
        partial_logger.error(
            "Partial provisioning for %s: step %s failed (%s); compensated=%s "
            "left_behind=%s ambiguous=%s orphaned_credential=%s",
            saga.label,
            failed_step,
            cause.message,
            compensated,
            left_behind,
            ambiguous,
            auth_subject_id,
            extra={
                "event": "partial_provisioning",
                "auth_subject_id": auth_subject_id,
                "failed_step": failed_step,
                "ambiguous": ambiguous,
            },
        )
        return error
