# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for secret issuers."""

import json

import bcrypt
import httpx
import pytest

from elibrary.core.config.settings import AccountServiceSettings, SecretIssuerSettings
from elibrary.domains.provisioning.ports import NullSecretIssuer
from elibrary.infrastructure.accounts.secret_issuer import (
    BcryptSecretIssuer,
    RemoteSecretIssuer,
    build_secret_issuer,
)


def make_remote(handler) -> RemoteSecretIssuer:
    settings = SecretIssuerSettings(mode="remote", url="http://issuer.test/hash-password")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteSecretIssuer(settings, client=client)


class TestRemoteSecretIssuer:
    """Tests for RemoteSecretIssuer."""

    @pytest.mark.asyncio
    async def test_returns_remote_hash(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"hash": "$2b$10$remote"})

        issuer = make_remote(handler)

        assert await issuer.issue("Abcdefg#23") == "$2b$10$remote"
        assert str(requests[0].url) == "http://issuer.test/hash-password"
        assert json.loads(requests[0].content) == {"password": "Abcdefg#23"}

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_falls_back(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await make_remote(handler).issue("Abcdefg#23") is None

    @pytest.mark.asyncio
    async def test_error_status_falls_back(self) -> None:
        issuer = make_remote(lambda request: httpx.Response(503))

        assert await issuer.issue("Abcdefg#23") is None

    @pytest.mark.asyncio
    async def test_missing_hash_falls_back(self) -> None:
        issuer = make_remote(lambda request: httpx.Response(200, json={"ok": True}))

        assert await issuer.issue("Abcdefg#23") is None

    @pytest.mark.asyncio
    async def test_malformed_body_falls_back(self) -> None:
        issuer = make_remote(lambda request: httpx.Response(200, text="not json"))

        assert await issuer.issue("Abcdefg#23") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[1, 2], "hash", 42])
    async def test_non_object_body_falls_back(self, body) -> None:
        issuer = make_remote(lambda request: httpx.Response(200, json=body))

        assert await issuer.issue("Abcdefg#23") is None


class TestBcryptSecretIssuer:
    """Tests for BcryptSecretIssuer."""

    @pytest.mark.asyncio
    async def test_issue_returns_bcrypt_hash(self) -> None:
        issuer = BcryptSecretIssuer(rounds=4)

        hashed = await issuer.issue("Abcdefg#23")

        assert hashed.startswith("$2b$04$")
        assert len(hashed) == 60

    @pytest.mark.asyncio
    async def test_hash_matches_only_the_issued_secret(self) -> None:
        issuer = BcryptSecretIssuer(rounds=4)
        hashed = await issuer.issue("Abcdefg#23")

        assert bcrypt.checkpw(b"Abcdefg#23", hashed.encode("utf-8"))
        assert not bcrypt.checkpw(b"Wrong#2345", hashed.encode("utf-8"))

    @pytest.mark.asyncio
    async def test_empty_secret_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            await BcryptSecretIssuer(rounds=4).issue("")


class TestBuildSecretIssuer:
    """Tests for build_secret_issuer."""

    @pytest.mark.parametrize(
        "mode,expected",
        [
            ("remote", RemoteSecretIssuer),
            ("local", BcryptSecretIssuer),
            ("disabled", NullSecretIssuer),
        ],
    )
    def test_mode_selects_issuer(self, mode: str, expected: type) -> None:
        issuer = build_secret_issuer(SecretIssuerSettings(mode=mode), AccountServiceSettings())

        assert isinstance(issuer, expected)
