# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Credential reset service.

Regenerates the temporary password of an existing identity. The credential
is reached through the profile record: the profile id is the credential's
auth subject id, while the role table primary key is not.

Only the credential changes; domain and profile records are left untouched.
"""

import logging

from elibrary.core.config.settings import ProvisioningSettings
from elibrary.domains.provisioning.exceptions import NotProvisionedError
from elibrary.domains.provisioning.generator import generate_secret
from elibrary.domains.provisioning.ports import AccountService, RecordStore
from elibrary.domains.provisioning.saga import bounded
from elibrary.domains.provisioning.service import ensure_operator
from elibrary.models.provisioning import OperatorSession, ProfileRecord, ProvisionResult, Role

logger = logging.getLogger(__name__)


class CredentialResetService:
    """Service for regenerating identity secrets.

    Example:
        >>> service = CredentialResetService(accounts, records, settings.provisioning)
        >>> result = await service.reset(session, Role.STUDENT, student_id)
    """

    def __init__(
        self,
        account_service: AccountService,
        record_store: RecordStore,
        settings: ProvisioningSettings,
    ) -> None:
        self._accounts = account_service
        self._records = record_store
        self._settings = settings

    async def reset(
        self,
        session: OperatorSession,
        role: Role | str,
        record_id: str,
    ) -> ProvisionResult:
        """Replace the secret of the identity owning ``record_id``.

        Args:
            session: Operator session authorizing the call.
            role: Identity role.
            record_id: Role table primary key; for librarians, the profile id.

        Returns:
            ProvisionResult with the unchanged enrollment id and a new secret.

        Raises:
            OperatorNotAuthorizedError: If the operator cannot manage identities.
            NotProvisionedError: If no profile of the operator's institution
                links to the record.
            UpstreamError: If a collaborator call failed or timed out.
        """
        ensure_operator(session)
        role = Role(role)

        profile = await bounded(
            self._lookup_profile(role, record_id), self._settings.step_timeout, "profile_lookup"
        )
        # Records of another institution are reported as unknown.
        if profile is None or profile.institution_id != session.institution_id:
            raise NotProvisionedError(
                f"No profile is linked to {role.value} record {record_id}",
                record_id=record_id,
            )

        secret = generate_secret(self._settings.secret_length)
        await bounded(
            self._accounts.replace_secret(session, profile.id, secret),
            self._settings.step_timeout,
            "replace_secret",
        )
        logger.info(
            "Secret replaced for %s %s (subject %s)",
            role.value,
            profile.enrollment_id,
            profile.id,
        )

        return ProvisionResult(
            enrollment_id=profile.enrollment_id,
            secret=secret,
            auth_subject_id=profile.id,
            domain_record_id=profile.domain_record_id,
            login_identifier=profile.email,
        )

    async def _lookup_profile(self, role: Role, record_id: str) -> ProfileRecord | None:
        if role.has_domain_record:
            return await self._records.get_profile_by_domain_record(role, record_id)
        profile = await self._records.get_profile(record_id)
        if profile is not None and profile.role is not role:
            return None
        return profile
