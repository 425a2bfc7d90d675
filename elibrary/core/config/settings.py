# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for eLibrary.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from elibrary.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.provisioning.secret_length)
    12
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Record store database configuration.

    The record store holds the role tables (students, staff) and the
    user_profiles join table.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    user: str = "elibrary"
    password: SecretStr = SecretStr("elibrary_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "elibrary"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class AccountServiceSettings(BaseSettings):
    """External Account Service configuration.

    The Account Service owns credentials (login identifier + secret). Calls
    are authorized by the operator's bearer token; the project API key is
    sent alongside it on every request.

    Attributes:
        base_url: Base URL of the account service auth API.
        api_key: Project API key sent as the ``apikey`` header.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACCOUNT_SERVICE_",
        extra="ignore",
    )

    base_url: str = "http://localhost:54321/auth/v1"
    api_key: SecretStr = SecretStr("")
    timeout: float = 10.0

    @property
    def api_headers(self) -> dict[str, str]:
        """Build the static headers sent with every request."""
        return {
            "apikey": self.api_key.get_secret_value(),
            "Content-Type": "application/json",
        }


class SecretIssuerSettings(BaseSettings):
    """Secret issuance (pre-hashing) configuration.

    Modes:
    - remote: POST the secret to a hashing endpoint; fall back to no hash
      when it is unreachable.
    - local: hash in-process with bcrypt.
    - disabled: never hash; the Account Service hashes on its own.

    Attributes:
        mode: Issuance mode.
        url: Remote hashing endpoint.
        timeout: Remote request timeout in seconds.
        bcrypt_rounds: Work factor for local hashing.
    """

    model_config = SettingsConfigDict(
        env_prefix="SECRET_ISSUER_",
        extra="ignore",
    )

    mode: Literal["remote", "local", "disabled"] = "disabled"
    url: str = "http://localhost:54321/functions/v1/hash-password"
    timeout: float = 5.0
    bcrypt_rounds: int = 12


class ProvisioningSettings(BaseSettings):
    """Identity provisioning behaviour.

    Attributes:
        secret_length: Length of generated temporary passwords (>= 10).
        enrollment_id_attempts: Attempts at a unique enrollment id before
            giving up on a single identity.
        step_timeout: Upper bound in seconds for every external call made
            by a saga step.
        synthesized_email_domain: Domain used to build a login identifier
            for identities imported without an email address.
        batch_max_rows: Maximum number of data rows accepted per upload.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONING_",
        extra="ignore",
    )

    secret_length: int = Field(default=12, ge=10, le=128)
    enrollment_id_attempts: int = Field(default=3, ge=1, le=10)
    step_timeout: float = Field(default=15.0, gt=0)
    synthesized_email_domain: str = "accounts.elibrary.local"
    batch_max_rows: int = Field(default=1000, ge=1)


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Record store settings.
        account_service: Account Service settings.
        secret_issuer: Secret issuance settings.
        provisioning: Provisioning behaviour settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    account_service: AccountServiceSettings = Field(default_factory=AccountServiceSettings)
    secret_issuer: SecretIssuerSettings = Field(default_factory=SecretIssuerSettings)
    provisioning: ProvisioningSettings = Field(default_factory=ProvisioningSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if not self.account_service.api_key.get_secret_value():
                raise ValueError(
                    "Account service API key must be set in production. "
                    "Set ACCOUNT_SERVICE_API_KEY environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
