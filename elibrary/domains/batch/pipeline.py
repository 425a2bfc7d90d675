# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch provisioning pipeline.

Applies the provisioning saga to each row of an uploaded file. Rows are
processed one at a time: external services share rate limits, and each row's
compensation stays local to that row. A failing row becomes an error outcome
and the batch moves on; the operator always receives one outcome per
well-formed row.

Example:
    >>> pipeline = BatchProvisioningPipeline(provisioning, settings.provisioning)
    >>> report = await pipeline.run_file(session, Role.STUDENT, uploaded_bytes)
    >>> report.summary.success_count
    3
"""

import logging
from collections.abc import Mapping, Sequence

from elibrary.core.config.settings import ProvisioningSettings
from elibrary.domains.batch.parser import ensure_batch_role, parse_batch
from elibrary.domains.batch.reporter import BatchReport, summarize
from elibrary.domains.provisioning.exceptions import ProvisioningError, ValidationError
from elibrary.domains.provisioning.service import (
    ProvisioningService,
    ensure_operator,
    missing_fields,
)
from elibrary.models.batch import BatchRow, RowOutcome, RowStatus
from elibrary.models.provisioning import IdentityAttributes, OperatorSession, Role
from elibrary.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

_ATTRIBUTE_FIELDS = frozenset(IdentityAttributes.model_fields)


class BatchProvisioningPipeline:
    """Runs provisioning over batch rows with per-row failure isolation.

    Attributes:
        _provisioning: Service running the per-row saga.
        _settings: Provisioning settings (row limit).
    """

    def __init__(
        self,
        provisioning: ProvisioningService,
        settings: ProvisioningSettings,
    ) -> None:
        self._provisioning = provisioning
        self._settings = settings

    async def run_file(
        self,
        session: OperatorSession,
        role: Role | str,
        data: bytes | str,
        delimiter: str = ",",
    ) -> BatchReport:
        """Parse an uploaded file and provision every well-formed row.

        Raises:
            ValidationError: If the file has no usable rows or exceeds the
                row limit. Nothing is provisioned in that case.
        """
        ensure_operator(session)
        role = ensure_batch_role(role)
        parsed = parse_batch(data, role, delimiter=delimiter)

        if not parsed.rows:
            raise ValidationError("No valid users found in file")
        if len(parsed.rows) > self._settings.batch_max_rows:
            raise ValidationError(
                f"File has {len(parsed.rows)} rows, the limit is {self._settings.batch_max_rows}"
            )

        outcomes = await self.run_batch(session, role, parsed.rows)
        return BatchReport(role=role, outcomes=outcomes, dropped_rows=parsed.dropped_rows)

    async def run_batch(
        self,
        session: OperatorSession,
        role: Role | str,
        rows: Sequence[BatchRow | Mapping[str, str]],
    ) -> list[RowOutcome]:
        """Provision each row in order.

        Args:
            session: Operator session authorizing the calls.
            role: Role imported (student or staff).
            rows: Parsed rows, or plain field maps keyed by internal field
                name (their row number is derived from their position).

        Returns:
            One RowOutcome per row, in input order.
        """
        ensure_operator(session)
        role = ensure_batch_role(role)
        bind_context(
            operator_id=session.operator_id,
            institution_id=session.institution_id,
            batch_role=role.value,
        )
        try:
            logger.info("Batch provisioning of %d %s rows started", len(rows), role.value)

            outcomes: list[RowOutcome] = []
            for index, row in enumerate(rows):
                if not isinstance(row, BatchRow):
                    row = BatchRow(row=index + 2, fields=dict(row))
                bind_context(batch_row=row.row)
                outcomes.append(await self._process_row(session, role, row))

            summary = summarize(outcomes)
            logger.info(
                "Batch provisioning finished: %d succeeded, %d failed",
                summary.success_count,
                summary.error_count,
            )
        finally:
            clear_context()
        return outcomes

    async def _process_row(
        self,
        session: OperatorSession,
        role: Role,
        row: BatchRow,
    ) -> RowOutcome:
        attributes = IdentityAttributes.model_validate(
            {key: value for key, value in row.fields.items() if key in _ATTRIBUTE_FIELDS}
        )
        name = attributes.full_name or "Unknown"

        missing = missing_fields(role, attributes)
        if missing:
            return RowOutcome(
                row=row.row,
                name=name,
                status=RowStatus.ERROR,
                message=f"missing required fields: {', '.join(missing)}",
            )

        try:
            result = await self._provisioning.provision(session, role, attributes)
        except ProvisioningError as e:
            logger.warning("Row %d (%s) failed: %s", row.row, name, e.message)
            return RowOutcome(row=row.row, name=name, status=RowStatus.ERROR, message=e.message)
        except Exception as e:
            logger.exception("Row %d (%s) failed unexpectedly", row.row, name)
            return RowOutcome(
                row=row.row,
                name=name,
                status=RowStatus.ERROR,
                message=str(e) or "Unknown error occurred",
            )

        return RowOutcome(
            row=row.row,
            name=name,
            status=RowStatus.SUCCESS,
            message="Successfully registered",
            enrollment_id=result.enrollment_id,
            secret=result.secret,
        )
