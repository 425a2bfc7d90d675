# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reconciliation sweep for partially provisioned identities.

Provisioning never compensates a timed-out step blindly and cannot delete
credentials it created, so two kinds of orphans may accumulate:
- credentials with no profile record (login possible nowhere)
- role table rows with no profile record (ambiguous profile writes)

The sweep only reports them; removal is an operator decision.
"""

import logging

from elibrary.core.config.settings import ProvisioningSettings
from elibrary.domains.provisioning.ports import AccountService, RecordStore
from elibrary.domains.provisioning.saga import bounded
from elibrary.domains.provisioning.service import ensure_operator
from elibrary.models.provisioning import OperatorSession, ReconciliationReport, Role
from elibrary.utils.logging import PARTIAL_PROVISIONING_LOGGER

logger = logging.getLogger(__name__)
partial_logger = logging.getLogger(PARTIAL_PROVISIONING_LOGGER)


class ReconciliationService:
    """Finds credentials and domain records without a profile."""

    def __init__(
        self,
        account_service: AccountService,
        record_store: RecordStore,
        settings: ProvisioningSettings,
    ) -> None:
        self._accounts = account_service
        self._records = record_store
        self._settings = settings

    async def sweep(self, session: OperatorSession) -> ReconciliationReport:
        """Compare credentials and role tables against profile records.

        Credentials are matched against profiles of every institution the
        operator can see through the Account Service; role table rows are
        checked for the operator's institution.

        Args:
            session: Operator session authorizing the calls.

        Returns:
            ReconciliationReport listing the orphans found.
        """
        ensure_operator(session)
        timeout = self._settings.step_timeout

        credentials = await bounded(
            self._accounts.list_credentials(session), timeout, "list_credentials"
        )
        profiles = await bounded(
            self._records.list_profiles(session.institution_id), timeout, "list_profiles"
        )
        profile_ids = {profile.id for profile in profiles}
        linked_records = {
            profile.domain_record_id for profile in profiles if profile.domain_record_id
        }

        report = ReconciliationReport()
        for credential in credentials:
            if credential.auth_subject_id in profile_ids:
                continue
            # Credentials of other institutions are invisible through profiles
            profile = await bounded(
                self._records.get_profile(credential.auth_subject_id), timeout, "profile_lookup"
            )
            if profile is None:
                report.orphaned_credentials.append(credential)

        for role in (Role.STUDENT, Role.STAFF):
            records = await bounded(
                self._records.list_domain_records(role, session.institution_id),
                timeout,
                "list_domain_records",
            )
            report.orphaned_domain_records.extend(
                record for record in records if record.id not in linked_records
            )

        for credential in report.orphaned_credentials:
            partial_logger.error(
                "Orphaned credential %s (%s) has no profile",
                credential.auth_subject_id,
                credential.login_identifier,
            )
        for record in report.orphaned_domain_records:
            partial_logger.error(
                "Orphaned %s record %s (%s) has no profile",
                record.role.value,
                record.id,
                record.enrollment_id,
            )
        logger.info(
            "Reconciliation for institution %s: %d orphaned credentials, %d orphaned records",
            session.institution_id,
            len(report.orphaned_credentials),
            len(report.orphaned_domain_records),
        )
        return report
