# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP client for the external Account Service.

Talks to the admin endpoints of a GoTrue-compatible auth API:
- POST   /admin/users        create a credential (email confirmed)
- PUT    /admin/users/{id}   replace the password
- DELETE /admin/users/{id}   delete a credential
- GET    /admin/users        list credentials (paginated)

Every request carries the operator's bearer token and the project API key.
Responses and transport failures are translated into the provisioning
error taxonomy; secrets and tokens are never logged.

Example:
    >>> accounts = HttpAccountService(settings.account_service)
    >>> subject_id = await accounts.create_credential(session, "a@b.com", secret)
    >>> await accounts.close()
"""

import logging
from typing import Any

import httpx

from elibrary.core.config.settings import AccountServiceSettings
from elibrary.domains.provisioning.exceptions import (
    LOGIN_IDENTIFIER,
    DuplicateError,
    UpstreamError,
)
from elibrary.domains.provisioning.ports import AccountService
from elibrary.models.provisioning import CredentialSummary, OperatorSession

logger = logging.getLogger(__name__)

SERVICE_NAME = "account_service"

_DUPLICATE_CODES = {"email_exists", "user_already_exists", "phone_exists"}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return response.text or response.reason_phrase


def _is_duplicate(response: httpx.Response, message: str) -> bool:
    if response.status_code == 409:
        return True
    if response.status_code not in (400, 422):
        return False
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error_code") in _DUPLICATE_CODES:
        return True
    return "already been registered" in message or "already exists" in message


class HttpAccountService(AccountService):
    """Account Service adapter over httpx.

    Attributes:
        _settings: Account Service configuration.
        _client: HTTP client for API requests.
    """

    def __init__(
        self,
        settings: AccountServiceSettings,
        client: httpx.AsyncClient | None = None,
        page_size: int = 200,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Account Service configuration.
            client: Preconfigured HTTP client; one is created from settings
                when omitted.
            page_size: Page size used when listing credentials.
        """
        self._settings = settings
        self._page_size = page_size
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            headers=settings.api_headers,
            timeout=settings.timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def create_credential(
        self,
        session: OperatorSession,
        login_identifier: str,
        secret: str,
    ) -> str:
        response = await self._request(
            session,
            "POST",
            "/admin/users",
            json={"email": login_identifier, "password": secret, "email_confirm": True},
        )
        self._raise_for_status(response, f"create credential for {login_identifier}")

        body = response.json()
        subject_id = body.get("id") or (body.get("user") or {}).get("id")
        if not subject_id:
            raise UpstreamError(
                "Account service returned no user id",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )
        return str(subject_id)

    async def replace_secret(
        self,
        session: OperatorSession,
        auth_subject_id: str,
        secret: str,
    ) -> None:
        response = await self._request(
            session,
            "PUT",
            f"/admin/users/{auth_subject_id}",
            json={"password": secret},
        )
        self._raise_for_status(response, f"replace secret of {auth_subject_id}")

    async def delete_credential(
        self,
        session: OperatorSession,
        auth_subject_id: str,
    ) -> None:
        response = await self._request(session, "DELETE", f"/admin/users/{auth_subject_id}")
        if response.status_code == 404:
            logger.info("Credential %s was already deleted", auth_subject_id)
            return
        self._raise_for_status(response, f"delete credential {auth_subject_id}")

    async def list_credentials(self, session: OperatorSession) -> list[CredentialSummary]:
        credentials: list[CredentialSummary] = []
        page = 1
        while True:
            response = await self._request(
                session,
                "GET",
                "/admin/users",
                params={"page": page, "per_page": self._page_size},
            )
            self._raise_for_status(response, "list credentials")
            users = response.json().get("users", [])
            credentials.extend(
                CredentialSummary(auth_subject_id=str(user["id"]), login_identifier=user.get("email"))
                for user in users
            )
            if len(users) < self._page_size:
                return credentials
            page += 1

    async def _request(
        self,
        session: OperatorSession,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {session.access_token.get_secret_value()}"}
        try:
            return await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("Account service %s %s timed out", method, url)
            raise UpstreamError(
                f"Account service request timed out: {method} {url}",
                service=SERVICE_NAME,
                timed_out=True,
            ) from e
        except httpx.HTTPError as e:
            logger.error("Account service %s %s failed: %s", method, url, str(e))
            raise UpstreamError(
                f"Account service unreachable: {str(e)}",
                service=SERVICE_NAME,
            ) from e

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return

        message = _error_message(response)
        logger.error(
            "Account service failed to %s: %d %s",
            operation,
            response.status_code,
            message,
        )
        if response.status_code == 429:
            raise UpstreamError(
                f"Account service rate limit reached: {message}",
                service=SERVICE_NAME,
                status_code=429,
                rate_limited=True,
            )
        if _is_duplicate(response, message):
            raise DuplicateError(message, field=LOGIN_IDENTIFIER)
        raise UpstreamError(
            f"Account service error ({response.status_code}): {message}",
            service=SERVICE_NAME,
            status_code=response.status_code,
        )
