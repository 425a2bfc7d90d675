# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Secret issuers producing the password hash kept on role table rows.

RemoteSecretIssuer posts the plaintext secret to a hashing endpoint. When
the endpoint is unreachable or answers with an error, provisioning goes on
without a hash: the Account Service hashes the secret it receives on its
own, and the plaintext is never written to the record store instead.

BcryptSecretIssuer hashes in-process with bcrypt.

Example:
    >>> issuer = build_secret_issuer(settings.secret_issuer, settings.account_service)
    >>> password_hash = await issuer.issue(secret)
"""

import asyncio
import logging

import bcrypt
import httpx

from elibrary.core.config.settings import AccountServiceSettings, SecretIssuerSettings
from elibrary.domains.provisioning.ports import NullSecretIssuer, SecretIssuer

logger = logging.getLogger(__name__)


class RemoteSecretIssuer(SecretIssuer):
    """Issuer backed by a remote hashing endpoint.

    Attributes:
        _url: Hashing endpoint URL.
        _client: HTTP client for API requests.
    """

    def __init__(
        self,
        settings: SecretIssuerSettings,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = settings.url
        self._client = client or httpx.AsyncClient(
            headers=headers or {},
            timeout=settings.timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def issue(self, secret: str) -> str | None:
        try:
            response = await self._client.post(self._url, json={"password": secret})
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            logger.warning("Secret issuer unavailable, continuing without hash: %s", str(e))
            return None
        except ValueError:
            logger.warning("Secret issuer returned a malformed body, continuing without hash")
            return None

        if not isinstance(body, dict):
            logger.warning("Secret issuer returned a malformed body, continuing without hash")
            return None
        password_hash = body.get("hash")
        if not password_hash:
            logger.warning("Secret issuer returned no hash, continuing without hash")
            return None
        return str(password_hash)


class BcryptSecretIssuer(SecretIssuer):
    """Issuer hashing secrets in-process with bcrypt.

    Hashing runs in a worker thread; at the default 12 rounds one hash
    takes about 250ms.

    Attributes:
        _rounds: Number of bcrypt rounds for hashing.

    Example:
        >>> issuer = BcryptSecretIssuer(rounds=12)
        >>> hashed = await issuer.issue("Secure#Pass42")
    """

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    async def issue(self, secret: str) -> str | None:
        if not secret:
            raise ValueError("Secret cannot be empty")
        return await asyncio.to_thread(self._hash, secret)

    def _hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")


def build_secret_issuer(
    settings: SecretIssuerSettings,
    account_settings: AccountServiceSettings,
) -> SecretIssuer:
    """Create the issuer selected by ``settings.mode``."""
    if settings.mode == "remote":
        return RemoteSecretIssuer(settings, headers=account_settings.api_headers)
    if settings.mode == "local":
        return BcryptSecretIssuer(rounds=settings.bcrypt_rounds)
    return NullSecretIssuer()
