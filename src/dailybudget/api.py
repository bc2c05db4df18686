"""
Signed Bunq API transport.

Every call carries the fixed headers, the bearer token when authenticated,
and an X-Bunq-Client-Signature over the exact body bytes when a private key
is configured. Responses are checked against the server public key before
the JSON payload is trusted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

import httpx
from cryptography.hazmat.primitives.asymmetric import rsa

from . import crypto
from .config import ClientConfig
from .errors import (
    ApiError,
    HttpStatusError,
    MalformedResponseError,
    MissingSignatureError,
    RateLimitError,
    SignatureMismatchError,
    TransportError,
    VerificationInputError,
)
from .models import (
    InstallationResult,
    MonetaryAccount,
    Pagination,
    PaymentRecord,
    SessionResult,
)
from .pagination import PageDirection, paginate

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Bunq-Client-Authentication"
CLIENT_SIGNATURE_HEADER = "X-Bunq-Client-Signature"
SERVER_SIGNATURE_HEADER = "X-Bunq-Server-Signature"


@dataclass(frozen=True)
class ApiResponse:
    items: list[Any]
    pagination: Optional[Pagination] = None


@dataclass(frozen=True)
class BunqApi:
    """One configured view of the API: a token plus the key material to use with it."""

    http: httpx.AsyncClient
    config: ClientConfig
    token: Optional[str] = None
    private_key: Optional[rsa.RSAPrivateKey] = None
    server_public_key: Optional[rsa.RSAPublicKey] = None

    def with_token(self, token: str) -> "BunqApi":
        return replace(self, token=token)

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[dict] = None,
        with_auth: bool = True,
    ) -> ApiResponse:
        url = self._url(endpoint)
        content = _serialize(body) if body is not None else None
        headers = self._headers(content, with_auth)

        logger.debug("=> %s %s", method, url)
        try:
            response = await self.http.request(method, url, content=content, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {method} {url}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Connection failed: {type(e).__name__}: {e}") from e
        logger.debug("<= %d %s", response.status_code, url)

        return self._handle_response(response)

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return self.config.base_url.rstrip("/") + "/" + endpoint.lstrip("/")

    def _headers(self, content: Optional[bytes], with_auth: bool) -> dict[str, str]:
        headers = {
            "Cache-Control": "no-cache",
            "User-Agent": self.config.user_agent,
        }
        if content is not None:
            headers["Content-Type"] = "application/json"
        if with_auth and self.token:
            headers[AUTH_HEADER] = self.token
        if with_auth and content is not None and self.private_key is not None:
            headers[CLIENT_SIGNATURE_HEADER] = crypto.sign(content, self.private_key)
        return headers

    def _handle_response(self, response: httpx.Response) -> ApiResponse:
        status = response.status_code
        if status == 429:
            raise RateLimitError(
                retry_after=_retry_after(response),
                description=_error_description(response),
            )
        if status >= 400:
            raise HttpStatusError(status, _error_description(response))

        body = response.content
        content_type = response.headers.get("content-type", "")
        if body and "application/json" not in content_type.lower():
            raise MalformedResponseError(f"Unexpected content type: {content_type or '<none>'}")

        if self.server_public_key is not None:
            self._verify_server_signature(response)

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e
        return _parse_envelope(payload)

    def _verify_server_signature(self, response: httpx.Response) -> None:
        signature = response.headers.get(SERVER_SIGNATURE_HEADER)
        if not signature:
            raise MissingSignatureError(f"Response has no {SERVER_SIGNATURE_HEADER} header")
        try:
            verified = crypto.verify(response.content, signature, self.server_public_key)
        except VerificationInputError as e:
            raise SignatureMismatchError(f"Undecodable server signature: {e}") from e
        if not verified:
            raise SignatureMismatchError("Server signature does not match response body")

    # ── Endpoints ─────────────────────────────────────────────────

    async def installation(self, public_key_pem: str) -> InstallationResult:
        response = await self.call(
            "/v1/installation",
            method="POST",
            body={"client_public_key": public_key_pem},
            with_auth=False,
        )
        return InstallationResult.from_api(response.items)

    async def device_server(self, description: str, api_key: str, permitted_ips: list[str]) -> list[Any]:
        response = await self.call(
            "/v1/device-server",
            method="POST",
            body={"description": description, "secret": api_key, "permitted_ips": permitted_ips},
        )
        return response.items

    async def session_server(self, api_key: str) -> SessionResult:
        response = await self.call("/v1/session-server", method="POST", body={"secret": api_key})
        return SessionResult.from_api(response.items)

    async def monetary_accounts(self, user_id: str) -> list[MonetaryAccount]:
        response = await self.call(f"/v1/user/{user_id}/monetary-account")
        return [MonetaryAccount.from_api(item) for item in response.items]

    async def monetary_account(self, user_id: str, account_id: str) -> MonetaryAccount:
        response = await self.call(f"/v1/user/{user_id}/monetary-account/{account_id}")
        if not response.items:
            raise MalformedResponseError(f"Monetary account {account_id} missing from response")
        return MonetaryAccount.from_api(response.items[0])

    async def monetary_account_payments(
        self,
        user_id: str,
        account_id: str,
        decide: Callable[[list[PaymentRecord]], PageDirection],
    ) -> list[PaymentRecord]:
        return await paginate(
            self.call,
            f"/v1/user/{user_id}/monetary-account/{account_id}/payment",
            decide=decide,
            parse=PaymentRecord.from_api,
            max_pages=self.config.max_pages,
        )


def _serialize(body: dict) -> bytes:
    return json.dumps(body, separators=(",", ":")).encode("utf-8")


def _parse_envelope(payload: Any) -> ApiResponse:
    if not isinstance(payload, dict):
        raise MalformedResponseError("Response JSON must be an object")

    pagination = None
    if payload.get("Pagination") is not None:
        pagination = Pagination.from_api(payload["Pagination"])

    items = payload.get("Response")
    if isinstance(items, list):
        return ApiResponse(items=items, pagination=pagination)

    description = _envelope_error(payload)
    if description is not None:
        raise ApiError(description)
    raise MalformedResponseError("Response has neither 'Response' nor 'Error'")


def _envelope_error(payload: dict) -> Optional[str]:
    errors = payload.get("Error")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        description = errors[0].get("error_description")
        if isinstance(description, str):
            return description
    return None


def _error_description(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        return _envelope_error(payload)
    return None


def _retry_after(response: httpx.Response) -> float:
    raw = response.headers.get("retry-after")
    try:
        return float(raw) if raw else 3.0
    except ValueError:
        return 3.0
