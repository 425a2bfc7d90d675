# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for component wiring."""

import pytest

from elibrary.core.config.settings import Settings
from elibrary.dependencies import build_components
from elibrary.models.provisioning import Role


class TestBuildComponents:
    """Tests for build_components."""

    @pytest.mark.asyncio
    async def test_services_share_collaborators(
        self, account_service, record_store, librarian_session, sample_staff
    ) -> None:
        """Test that a batch-provisioned identity can be reset and swept."""
        components = build_components(Settings(), account_service, record_store)

        outcomes = await components.batch.run_batch(librarian_session, Role.STAFF, [sample_staff])
        record_id = next(iter(record_store.domain_records[Role.STAFF]))
        reset = await components.reset.reset(librarian_session, Role.STAFF, record_id)
        report = await components.reconciliation.sweep(librarian_session)

        assert reset.enrollment_id == outcomes[0].enrollment_id
        assert report.is_consistent is True
