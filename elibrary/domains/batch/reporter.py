# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch result reporting.

A BatchReport holds the outcomes of one batch run in memory and renders:
- the outcome table (row, name, enrollment id, status, message)
- the credential manifest (name, enrollment id, password) of successful rows

The manifest can be rendered once. Rendering it discards the secrets from
the report, so they are not retrievable afterwards.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from elibrary.domains.batch.parser import encode_rows
from elibrary.models.batch import BatchSummary, RowOutcome, RowStatus
from elibrary.models.provisioning import Role
from elibrary.utils.datetime import epoch_millis, utc_now

logger = logging.getLogger(__name__)

OUTCOME_HEADER = ["Row", "Name", "Enrollment ID", "Status", "Message"]
MANIFEST_HEADER = ["Full Name", "Enrollment ID", "Password"]


class CredentialManifestError(Exception):
    """Raised when a credential manifest cannot be rendered."""

    pass


def summarize(outcomes: list[RowOutcome]) -> BatchSummary:
    """Count successes and failures."""
    success_count = sum(1 for outcome in outcomes if outcome.status is RowStatus.SUCCESS)
    return BatchSummary(
        total=len(outcomes),
        success_count=success_count,
        error_count=len(outcomes) - success_count,
    )


def manifest_filename(role: Role, now: datetime | None = None) -> str:
    """Download file name for a credential manifest."""
    return f"{role.value}_credentials_{epoch_millis(now)}.csv"


@dataclass
class BatchReport:
    """In-memory result of a batch run.

    Attributes:
        role: Role imported.
        outcomes: One outcome per well-formed input row, in input order.
        dropped_rows: Line numbers dropped by the parser.
        created_at: When the run finished.
    """

    role: Role
    outcomes: list[RowOutcome]
    dropped_rows: list[int] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    manifest_issued: bool = False

    @property
    def summary(self) -> BatchSummary:
        return summarize(self.outcomes)

    @property
    def successes(self) -> list[RowOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is RowStatus.SUCCESS]

    @property
    def failures(self) -> list[RowOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is RowStatus.ERROR]

    def render_outcome_table(self, delimiter: str = ",") -> str:
        """Render every outcome as delimited text. Secrets are not included."""
        return encode_rows(
            OUTCOME_HEADER,
            (
                [
                    outcome.row,
                    outcome.name,
                    outcome.enrollment_id,
                    outcome.status.value,
                    outcome.message,
                ]
                for outcome in self.outcomes
            ),
            delimiter=delimiter,
        )

    def render_credential_manifest(self, delimiter: str = ",") -> str:
        """Render the one-time credential manifest of successful rows.

        Returns:
            Delimited text with one line per newly provisioned identity.

        Raises:
            CredentialManifestError: If there are no successful rows, or the
                manifest was already rendered.
        """
        if self.manifest_issued:
            raise CredentialManifestError("Credential manifest was already issued")

        successes = self.successes
        if not successes:
            raise CredentialManifestError("No successful registrations to download")

        content = encode_rows(
            MANIFEST_HEADER,
            (
                [
                    outcome.name,
                    outcome.enrollment_id,
                    outcome.secret.get_secret_value() if outcome.secret else "",
                ]
                for outcome in successes
            ),
            delimiter=delimiter,
        )

        for outcome in successes:
            outcome.secret = None
        self.manifest_issued = True
        logger.info(
            "Credential manifest issued for %d %s identities",
            len(successes),
            self.role.value,
        )
        return content

    def manifest_filename(self) -> str:
        return manifest_filename(self.role, self.created_at)
