# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Administrative edit and removal of provisioned identities.

Edits are restricted to names and contact details: identifiers assigned at
provisioning time never change. Removal deletes the role table row (the
profile follows by cascade) and then tries to delete the credential; the
Account Service may refuse, in which case the credential simply has no
reachable profile any more and can no longer be used to sign in.
"""

import logging
from typing import Any

from elibrary.core.config.settings import ProvisioningSettings
from elibrary.domains.provisioning.exceptions import (
    ProvisioningError,
    RecordNotFoundError,
    ValidationError,
)
from elibrary.domains.provisioning.ports import AccountService, RecordStore
from elibrary.domains.provisioning.saga import bounded
from elibrary.domains.provisioning.service import ensure_operator, validate_identity
from elibrary.models.provisioning import (
    DeprovisionResult,
    DomainRecord,
    IdentityAttributes,
    OperatorSession,
    Role,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS: dict[Role, frozenset[str]] = {
    Role.STUDENT: frozenset({"full_name", "phone", "grade_level"}),
    Role.STAFF: frozenset({"full_name", "phone", "department", "position"}),
}


class IdentityLifecycleService:
    """Service for editing and removing identities."""

    def __init__(
        self,
        account_service: AccountService,
        record_store: RecordStore,
        settings: ProvisioningSettings,
    ) -> None:
        self._accounts = account_service
        self._records = record_store
        self._settings = settings

    async def update_identity(
        self,
        session: OperatorSession,
        role: Role | str,
        record_id: str,
        changes: dict[str, Any],
    ) -> DomainRecord:
        """Update editable attributes of a domain record.

        The email is the login identifier shared with the credential and the
        profile record, so it cannot be edited here.

        Args:
            session: Operator session authorizing the call.
            role: Identity role (student or staff).
            record_id: Role table primary key.
            changes: Attribute values to set.

        Returns:
            The updated domain record.

        Raises:
            ValidationError: If a non-editable field (an identifier or the
                email) is included, or the result would be invalid.
            RecordNotFoundError: If the record does not exist.
        """
        ensure_operator(session)
        role = Role(role)
        if not role.has_domain_record:
            raise ValidationError(f"{role.value} identities have no editable record")

        rejected = sorted(set(changes) - EDITABLE_FIELDS[role])
        if rejected:
            raise ValidationError(
                f"fields cannot be changed: {', '.join(rejected)}",
                fields=rejected,
            )

        timeout = self._settings.step_timeout
        current = await bounded(
            self._records.get_domain_record(role, record_id), timeout, "record_lookup"
        )
        if current is None or current.institution_id != session.institution_id:
            raise RecordNotFoundError(
                f"No {role.value} record {record_id}", record_id=record_id
            )

        merged = IdentityAttributes.model_validate(
            {**current.model_dump(include={"email", *EDITABLE_FIELDS[role]}), **changes}
        )
        if role is Role.STUDENT:
            # A student's stored email is the parent contact
            merged.parent_email = merged.email
        validate_identity(role, merged)

        clean = {name: getattr(merged, name) for name in changes}
        updated = await bounded(
            self._records.update_domain_record(role, record_id, clean), timeout, "record_update"
        )
        logger.info("Updated %s %s fields=%s", role.value, updated.enrollment_id, sorted(clean))
        return updated

    async def deprovision(
        self,
        session: OperatorSession,
        role: Role | str,
        record_id: str,
    ) -> DeprovisionResult:
        """Remove an identity.

        For students and staff, ``record_id`` is the role table primary key;
        for librarians it is the profile id.

        Raises:
            RecordNotFoundError: If the record does not exist.
        """
        ensure_operator(session)
        role = Role(role)
        timeout = self._settings.step_timeout

        if role.has_domain_record:
            record = await bounded(
                self._records.get_domain_record(role, record_id), timeout, "record_lookup"
            )
            if record is None or record.institution_id != session.institution_id:
                raise RecordNotFoundError(
                    f"No {role.value} record {record_id}", record_id=record_id
                )
            profile = await bounded(
                self._records.get_profile_by_domain_record(role, record_id),
                timeout,
                "profile_lookup",
            )
            await bounded(
                self._records.delete_domain_record(role, record_id), timeout, "record_delete"
            )
        else:
            profile = await bounded(self._records.get_profile(record_id), timeout, "profile_lookup")
            if profile is None or profile.role is not role:
                raise RecordNotFoundError(
                    f"No {role.value} profile {record_id}", record_id=record_id
                )
            await bounded(self._records.delete_profile(record_id), timeout, "profile_delete")

        result = DeprovisionResult(
            domain_record_id=record_id,
            auth_subject_id=profile.id if profile else None,
        )
        if profile is None:
            logger.info("Removed %s record %s without a linked credential", role.value, record_id)
            return result

        try:
            await bounded(
                self._accounts.delete_credential(session, profile.id), timeout, "credential_delete"
            )
        except ProvisioningError as e:
            logger.warning(
                "Credential %s could not be deleted after removing %s %s: %s",
                profile.id,
                role.value,
                record_id,
                e.message,
            )
            return result

        result.credential_removed = True
        logger.info("Removed %s %s and credential %s", role.value, record_id, profile.id)
        return result
