# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity provisioning domain.

This package provides:
- ProvisioningService: the credential -> domain record -> profile saga
- CredentialResetService: secret regeneration through the profile lookup
- IdentityLifecycleService: administrative edit and removal
- ReconciliationService: sweep for orphaned credentials and records
- generate_secret / generate_enrollment_id: secret and identifier generation
"""

from elibrary.domains.provisioning.exceptions import (
    DuplicateError,
    DuplicateSubmissionError,
    NotProvisionedError,
    OperatorNotAuthorizedError,
    PartialProvisioningError,
    ProvisioningError,
    RecordNotFoundError,
    UpstreamError,
    ValidationError,
)
from elibrary.domains.provisioning.generator import (
    generate_enrollment_id,
    generate_secret,
    meets_complexity,
)
from elibrary.domains.provisioning.lifecycle import IdentityLifecycleService
from elibrary.domains.provisioning.ports import AccountService, RecordStore, SecretIssuer
from elibrary.domains.provisioning.reconciliation import ReconciliationService
from elibrary.domains.provisioning.reset import CredentialResetService
from elibrary.domains.provisioning.saga import ProvisioningSaga
from elibrary.domains.provisioning.service import (
    ProvisioningService,
    SubmissionLatch,
    missing_fields,
    validate_identity,
)

__all__ = [
    # Services
    "ProvisioningService",
    "CredentialResetService",
    "IdentityLifecycleService",
    "ReconciliationService",
    "ProvisioningSaga",
    "SubmissionLatch",
    "missing_fields",
    "validate_identity",
    # Generation
    "generate_secret",
    "generate_enrollment_id",
    "meets_complexity",
    # Ports
    "AccountService",
    "RecordStore",
    "SecretIssuer",
    # Errors
    "ProvisioningError",
    "ValidationError",
    "DuplicateError",
    "UpstreamError",
    "PartialProvisioningError",
    "NotProvisionedError",
    "RecordNotFoundError",
    "DuplicateSubmissionError",
    "OperatorNotAuthorizedError",
]
