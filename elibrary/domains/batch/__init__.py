# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch provisioning domain.

This package provides:
- parse_batch / encode_rows / render_template: delimited file handling
- BatchProvisioningPipeline: sequential per-row provisioning
- BatchReport: outcome table and one-time credential manifest
"""

from elibrary.domains.batch.parser import (
    HEADER_ALIASES,
    encode_rows,
    normalize_header,
    parse_batch,
    render_template,
)
from elibrary.domains.batch.pipeline import BatchProvisioningPipeline
from elibrary.domains.batch.reporter import (
    BatchReport,
    CredentialManifestError,
    manifest_filename,
    summarize,
)

__all__ = [
    "BatchProvisioningPipeline",
    "BatchReport",
    "CredentialManifestError",
    "HEADER_ALIASES",
    "encode_rows",
    "manifest_filename",
    "normalize_header",
    "parse_batch",
    "render_template",
    "summarize",
]
