# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Compensating-transaction support for multi-resource provisioning.

The Account Service and the Record Store share no transaction boundary, so
a provisioning attempt is run as a saga: each completed step is recorded
together with the action that undoes it, and compensation walks the
recorded steps in reverse. Steps recorded without a compensating action
(the credential) are reported back as uncompensated.

Example:
    >>> saga = ProvisioningSaga("student:ada@example.com", step_timeout=15.0)
    >>> subject = await saga.run_step("credential", create_credential)
    >>> record = await saga.run_step(
    ...     "domain_record", create_record, compensation=delete_record
    ... )
    >>> outcome = await saga.compensate()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from elibrary.domains.provisioning.exceptions import ProvisioningError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float, name: str) -> T:
    """Await a collaborator call under a time bound.

    Args:
        awaitable: The pending call.
        timeout: Upper bound in seconds.
        name: Step or operation name used in the error.

    Raises:
        UpstreamError: With ``timed_out=True`` when the bound is exceeded.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise UpstreamError(
            f"Step {name} timed out after {timeout}s",
            service=name,
            timed_out=True,
        ) from e


@dataclass
class SagaStep:
    """A completed step and the action that undoes it."""

    name: str
    compensation: Callable[[], Awaitable[Any]] | None = None


@dataclass
class CompensationOutcome:
    """What a compensation pass managed to undo.

    Attributes:
        compensated: Steps undone, in the order they were undone.
        uncompensated: Steps left in place, either because they have no
            compensating action or because the action failed.
    """

    compensated: list[str] = field(default_factory=list)
    uncompensated: list[str] = field(default_factory=list)


class ProvisioningSaga:
    """Ordered record of completed provisioning steps.

    Attributes:
        label: Identifies the attempt in log lines.
    """

    def __init__(self, label: str, step_timeout: float) -> None:
        """Initialize an empty saga.

        Args:
            label: Identifies the attempt in log lines.
            step_timeout: Upper bound in seconds for each step and each
                compensating action.
        """
        self.label = label
        self._step_timeout = step_timeout
        self._steps: list[SagaStep] = []

    @property
    def completed_steps(self) -> list[str]:
        """Names of recorded steps, oldest first."""
        return [step.name for step in self._steps]

    def record(
        self,
        name: str,
        compensation: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        """Record a completed step."""
        self._steps.append(SagaStep(name=name, compensation=compensation))

    async def run_step(
        self,
        name: str,
        action: Callable[[], Awaitable[T]],
        compensation: Callable[[T], Awaitable[Any]] | None = None,
    ) -> T:
        """Run one step under the step timeout and record it on success.

        Args:
            name: Step name.
            action: Zero-argument coroutine function performing the step.
            compensation: Coroutine function receiving the step result and
                undoing it.

        Returns:
            The step result.

        Raises:
            UpstreamError: With ``timed_out=True`` if the step exceeded the
                timeout. Errors raised by ``action`` propagate unchanged.
        """
        result = await bounded(action(), self._step_timeout, name)
        if compensation is None:
            self.record(name)
        else:
            self.record(name, lambda: compensation(result))
        return result

    async def compensate(self, stop_at: str | None = None) -> CompensationOutcome:
        """Undo recorded steps in reverse order.

        Args:
            stop_at: Stop before undoing this step; it and every earlier
                step stay recorded. None undoes everything.

        Returns:
            Which steps were and were not undone.
        """
        outcome = CompensationOutcome()
        while self._steps and self._steps[-1].name != stop_at:
            step = self._steps.pop()
            if step.compensation is None:
                outcome.uncompensated.append(step.name)
                continue
            try:
                await bounded(step.compensation(), self._step_timeout, f"compensate:{step.name}")
            except ProvisioningError as e:
                logger.error(
                    "Compensation of step %s failed for %s: %s",
                    step.name,
                    self.label,
                    e.message,
                )
                outcome.uncompensated.append(step.name)
                continue
            logger.info("Compensated step %s for %s", step.name, self.label)
            outcome.compensated.append(step.name)
        return outcome
