# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Component wiring for eLibrary identity provisioning.

Builds the services from settings and owns the lifetime of the shared
resources they use (record store connection pool, HTTP clients).

Example:
    >>> async with provisioning_components() as components:
    ...     result = await components.provisioning.provision(session, "student", attrs)
    ...     report = await components.batch.run_file(session, "staff", uploaded)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from elibrary.core.config import Settings, get_settings
from elibrary.domains.batch.pipeline import BatchProvisioningPipeline
from elibrary.domains.provisioning.lifecycle import IdentityLifecycleService
from elibrary.domains.provisioning.ports import AccountService, RecordStore, SecretIssuer
from elibrary.domains.provisioning.reconciliation import ReconciliationService
from elibrary.domains.provisioning.reset import CredentialResetService
from elibrary.domains.provisioning.service import ProvisioningService, SubmissionLatch
from elibrary.infrastructure.accounts import (
    HttpAccountService,
    RemoteSecretIssuer,
    build_secret_issuer,
)
from elibrary.infrastructure.database import (
    SqlRecordStore,
    close_database,
    get_sessionmaker,
    init_database,
)
from elibrary.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningComponents:
    """Services sharing one set of collaborators."""

    provisioning: ProvisioningService
    reset: CredentialResetService
    lifecycle: IdentityLifecycleService
    reconciliation: ReconciliationService
    batch: BatchProvisioningPipeline


def build_components(
    settings: Settings,
    account_service: AccountService,
    record_store: RecordStore,
    secret_issuer: SecretIssuer | None = None,
) -> ProvisioningComponents:
    """Build the services over the given collaborators.

    Args:
        settings: Application settings.
        account_service: Account Service adapter.
        record_store: Record store adapter.
        secret_issuer: Optional pre-hashing issuer.

    Returns:
        The wired services.
    """
    provisioning_settings = settings.provisioning
    provisioning = ProvisioningService(
        account_service,
        record_store,
        provisioning_settings,
        secret_issuer=secret_issuer,
        latch=SubmissionLatch(),
    )
    return ProvisioningComponents(
        provisioning=provisioning,
        reset=CredentialResetService(account_service, record_store, provisioning_settings),
        lifecycle=IdentityLifecycleService(account_service, record_store, provisioning_settings),
        reconciliation=ReconciliationService(
            account_service, record_store, provisioning_settings
        ),
        batch=BatchProvisioningPipeline(provisioning, provisioning_settings),
    )


@asynccontextmanager
async def provisioning_components(
    settings: Settings | None = None,
) -> AsyncGenerator[ProvisioningComponents, None]:
    """Initialize shared resources, yield the services and release them.

    Args:
        settings: Application settings. Defaults to get_settings().

    Yields:
        The wired services.
    """
    settings = settings or get_settings()
    setup_logging(settings)
    logger.info("Starting eLibrary provisioning (environment=%s)", settings.environment)

    await init_database(settings)
    accounts = HttpAccountService(settings.account_service)
    issuer = build_secret_issuer(settings.secret_issuer, settings.account_service)
    try:
        yield build_components(
            settings,
            accounts,
            SqlRecordStore(get_sessionmaker()),
            secret_issuer=issuer,
        )
    finally:
        if isinstance(issuer, RemoteSecretIssuer):
            await issuer.close()
        await accounts.close()
        await close_database()
        logger.info("eLibrary provisioning resources released")
