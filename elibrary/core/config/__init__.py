# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for eLibrary.

Example:
    >>> from elibrary.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from elibrary.core.config.settings import (
    AccountServiceSettings,
    DatabaseSettings,
    ProvisioningSettings,
    SecretIssuerSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "AccountServiceSettings",
    "SecretIssuerSettings",
    "ProvisioningSettings",
]
