# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the provisioning saga."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from elibrary.domains.provisioning.exceptions import UpstreamError
from elibrary.domains.provisioning.saga import ProvisioningSaga, bounded


class TestBounded:
    """Tests for the bounded helper."""

    @pytest.mark.asyncio
    async def test_returns_result_within_bound(self) -> None:
        result = await bounded(asyncio.sleep(0, result="done"), 1.0, "step")

        assert result == "done"

    @pytest.mark.asyncio
    async def test_timeout_becomes_upstream_error(self) -> None:
        """Test that exceeding the bound raises a timed-out UpstreamError."""
        with pytest.raises(UpstreamError) as exc_info:
            await bounded(asyncio.sleep(1.0), 0.01, "profile_record")

        assert exc_info.value.timed_out is True
        assert exc_info.value.service == "profile_record"


class TestProvisioningSaga:
    """Tests for ProvisioningSaga."""

    @pytest.mark.asyncio
    async def test_records_completed_steps_in_order(self) -> None:
        saga = ProvisioningSaga("test", step_timeout=1.0)

        await saga.run_step("first", AsyncMock(return_value=1))
        await saga.run_step("second", AsyncMock(return_value=2))

        assert saga.completed_steps == ["first", "second"]

    @pytest.mark.asyncio
    async def test_failed_step_is_not_recorded(self) -> None:
        saga = ProvisioningSaga("test", step_timeout=1.0)

        with pytest.raises(UpstreamError):
            await saga.run_step(
                "broken",
                AsyncMock(side_effect=UpstreamError("boom", service="record_store")),
            )

        assert saga.completed_steps == []

    @pytest.mark.asyncio
    async def test_compensates_in_reverse_order(self) -> None:
        """Test that compensations receive the step result, newest first."""
        undone: list[str] = []

        async def undo(result: str) -> None:
            undone.append(result)

        saga = ProvisioningSaga("test", step_timeout=1.0)
        await saga.run_step("credential", AsyncMock(return_value="auth-1"))
        await saga.run_step("a", AsyncMock(return_value="record-a"), compensation=undo)
        await saga.run_step("b", AsyncMock(return_value="record-b"), compensation=undo)

        outcome = await saga.compensate()

        assert undone == ["record-b", "record-a"]
        assert outcome.compensated == ["b", "a"]
        assert outcome.uncompensated == ["credential"]
        assert saga.completed_steps == []

    @pytest.mark.asyncio
    async def test_compensate_stops_at_step(self) -> None:
        undo = AsyncMock()
        saga = ProvisioningSaga("test", step_timeout=1.0)
        await saga.run_step("credential", AsyncMock(return_value="auth-1"))
        await saga.run_step("domain_record", AsyncMock(return_value="r"), compensation=undo)

        outcome = await saga.compensate(stop_at="credential")

        undo.assert_awaited_once_with("r")
        assert outcome.compensated == ["domain_record"]
        assert saga.completed_steps == ["credential"]

    @pytest.mark.asyncio
    async def test_failed_compensation_is_reported(self) -> None:
        """Test that a failing compensation leaves the step uncompensated."""
        undo = AsyncMock(side_effect=UpstreamError("down", service="record_store"))
        saga = ProvisioningSaga("test", step_timeout=1.0)
        await saga.run_step("domain_record", AsyncMock(return_value="r"), compensation=undo)

        outcome = await saga.compensate()

        assert outcome.compensated == []
        assert outcome.uncompensated == ["domain_record"]
