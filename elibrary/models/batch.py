# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Models for batch provisioning."""

from enum import Enum

from pydantic import BaseModel, Field, SecretStr


class RowStatus(str, Enum):
    """Per-row batch status."""

    SUCCESS = "success"
    ERROR = "error"


class BatchRow(BaseModel):
    """One parsed data row.

    Attributes:
        row: 1-based line number in the uploaded file (the header is line 1).
        fields: Values keyed by internal field name.
    """

    row: int
    fields: dict[str, str] = Field(default_factory=dict)


class ParsedBatch(BaseModel):
    """Result of parsing an uploaded delimited file.

    Attributes:
        header: Internal field names, in file column order.
        rows: Well-formed data rows.
        dropped_rows: Line numbers of rows whose column count did not
            match the header.
    """

    header: list[str]
    rows: list[BatchRow] = Field(default_factory=list)
    dropped_rows: list[int] = Field(default_factory=list)


class RowOutcome(BaseModel):
    """Result of provisioning one batch row."""

    row: int
    name: str
    status: RowStatus
    message: str
    enrollment_id: str | None = None
    secret: SecretStr | None = None


class BatchSummary(BaseModel):
    """Aggregate counts over a batch run."""

    total: int
    success_count: int
    error_count: int
