# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Account Service and secret issuance adapters."""

from elibrary.infrastructure.accounts.client import HttpAccountService
from elibrary.infrastructure.accounts.secret_issuer import (
    BcryptSecretIssuer,
    RemoteSecretIssuer,
    build_secret_issuer,
)

__all__ = [
    "HttpAccountService",
    "BcryptSecretIssuer",
    "RemoteSecretIssuer",
    "build_secret_issuer",
]
