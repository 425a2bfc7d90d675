# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the reconciliation sweep."""

import logging

import pytest

from elibrary.domains.provisioning.exceptions import PartialProvisioningError, UpstreamError
from elibrary.domains.provisioning.reconciliation import ReconciliationService
from elibrary.domains.provisioning.service import ProvisioningService
from elibrary.models.provisioning import Role
from elibrary.utils.logging import PARTIAL_PROVISIONING_LOGGER


@pytest.fixture
def provisioning(account_service, record_store, provisioning_settings):
    """Create provisioning service over in-memory collaborators."""
    return ProvisioningService(account_service, record_store, provisioning_settings)


@pytest.fixture
def reconciliation(account_service, record_store, provisioning_settings):
    """Create reconciliation service over in-memory collaborators."""
    return ReconciliationService(account_service, record_store, provisioning_settings)


class TestSweep:
    """Tests for ReconciliationService.sweep."""

    @pytest.mark.asyncio
    async def test_consistent_state(
        self, provisioning, reconciliation, librarian_session, sample_student, sample_staff
    ) -> None:
        await provisioning.provision(librarian_session, Role.STUDENT, sample_student)
        await provisioning.provision(librarian_session, Role.STAFF, sample_staff)

        report = await reconciliation.sweep(librarian_session)

        assert report.is_consistent is True

    @pytest.mark.asyncio
    async def test_reports_orphaned_credential(
        self, provisioning, reconciliation, librarian_session, record_store, sample_student, caplog
    ) -> None:
        """Test that a credential left by a failed provision is reported."""
        record_store.fail("create_domain_record", UpstreamError("down", service="record_store"))
        with pytest.raises(PartialProvisioningError) as exc_info:
            await provisioning.provision(librarian_session, Role.STUDENT, sample_student)
        caplog.set_level(logging.ERROR, logger=PARTIAL_PROVISIONING_LOGGER)

        report = await reconciliation.sweep(librarian_session)

        assert [c.auth_subject_id for c in report.orphaned_credentials] == [
            exc_info.value.auth_subject_id
        ]
        assert report.orphaned_domain_records == []
        assert "Orphaned credential" in caplog.text

    @pytest.mark.asyncio
    async def test_reports_orphaned_domain_record(
        self, reconciliation, librarian_session, record_store
    ) -> None:
        record = await record_store.create_domain_record(
            Role.STAFF,
            {
                "institution_id": librarian_session.institution_id,
                "enrollment_id": "STF12345678901",
                "full_name": "Half Provisioned",
            },
        )

        report = await reconciliation.sweep(librarian_session)

        assert [r.id for r in report.orphaned_domain_records] == [record.id]

    @pytest.mark.asyncio
    async def test_sweep_is_read_only(
        self, provisioning, reconciliation, librarian_session, account_service, record_store, sample_staff
    ) -> None:
        await provisioning.provision(librarian_session, Role.STAFF, sample_staff)
        account_service.calls.clear()
        record_store.calls.clear()

        await reconciliation.sweep(librarian_session)

        assert account_service.calls == ["list_credentials"]
        assert set(record_store.calls) <= {
            "list_profiles",
            "get_profile",
            "list_domain_records",
        }
