# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for identity provisioning.

Adapters translate transport and driver failures into these exceptions so
that services and the batch pipeline handle one hierarchy only.
"""

ENROLLMENT_ID = "enrollment_id"
LOGIN_IDENTIFIER = "login_identifier"


class ProvisioningError(Exception):
    """Base exception for provisioning errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ProvisioningError):
    """Raised when a required attribute is missing or invalid.

    Raised before any external service is contacted.
    """

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class OperatorNotAuthorizedError(ProvisioningError):
    """Raised when the operator session lacks identity management privilege."""

    pass


class DuplicateSubmissionError(ProvisioningError):
    """Raised when the same submission is already in flight."""

    pass


class DuplicateError(ProvisioningError):
    """Raised when a login identifier or enrollment id already exists.

    Attributes:
        field: Which unique value collided.
    """

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message)
        self.field = field

    @property
    def retryable(self) -> bool:
        """Enrollment id collisions are solved by regenerating the id.

        A login identifier collision means the person already exists.
        """
        return self.field == ENROLLMENT_ID


class UpstreamError(ProvisioningError):
    """Raised when the Account Service or Record Store call fails.

    Attributes:
        service: Name of the failing collaborator.
        status_code: HTTP status code, when there was a response.
        rate_limited: Whether the collaborator rejected the call for rate.
        timed_out: Whether the call exceeded its time bound. The effect of
            a timed-out call is unknown.
    """

    def __init__(
        self,
        message: str,
        service: str,
        status_code: int | None = None,
        rate_limited: bool = False,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.rate_limited = rate_limited
        self.timed_out = timed_out


class PartialProvisioningError(ProvisioningError):
    """Raised when a saga step failed after the credential was created.

    The credential cannot be removed by this system, so it is left without a
    reachable profile. Operators reconcile these manually or through
    ReconciliationService.

    Attributes:
        auth_subject_id: Orphaned credential.
        failed_step: Saga step that failed.
        compensated_steps: Steps that were undone before raising.
        uncompensated_steps: Steps still in place, most recent first. The
            credential is always among them.
        ambiguous: True when the failed step timed out and may have taken
            effect; no compensation was attempted in that case.
    """

    def __init__(
        self,
        message: str,
        auth_subject_id: str,
        failed_step: str,
        compensated_steps: list[str] | None = None,
        uncompensated_steps: list[str] | None = None,
        ambiguous: bool = False,
    ) -> None:
        super().__init__(message)
        self.auth_subject_id = auth_subject_id
        self.failed_step = failed_step
        self.compensated_steps = compensated_steps or []
        self.uncompensated_steps = uncompensated_steps or []
        self.ambiguous = ambiguous


class NotProvisionedError(ProvisioningError):
    """Raised when a domain record has no linked profile record.

    Expected for data imported before provisioning existed.
    """

    def __init__(self, message: str, record_id: str) -> None:
        super().__init__(message)
        self.record_id = record_id


class RecordNotFoundError(ProvisioningError):
    """Raised when a domain record does not exist."""

    def __init__(self, message: str, record_id: str) -> None:
        super().__init__(message)
        self.record_id = record_id
