"""Shared fixtures: RSA keys and an in-process fake of the Bunq API."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

import httpx
import pytest

from dailybudget import crypto
from dailybudget.config import ClientConfig

BASE_URL = "https://bunq.test"
USER_ID = 1234
ACCOUNT_ID = 42


@pytest.fixture(scope="session")
def client_keys() -> crypto.KeyPair:
    return crypto.generate_key_pair()


@pytest.fixture(scope="session")
def server_keys() -> crypto.KeyPair:
    return crypto.generate_key_pair()


@pytest.fixture(scope="session")
def other_keys() -> crypto.KeyPair:
    return crypto.generate_key_pair()


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(base_url=BASE_URL)


def payment_item(payment_id: int, created: str, balance_after: str, amount: str = "-10.00") -> dict:
    return {
        "Payment": {
            "id": payment_id,
            "created": created,
            "description": f"payment {payment_id}",
            "amount": {"value": amount, "currency": "EUR"},
            "balance_after_mutation": {"value": balance_after, "currency": "EUR"},
        }
    }


def account_item(account_id: int = ACCOUNT_ID, description: str = "Main", balance: str = "1500.00") -> dict:
    return {
        "MonetaryAccountBank": {
            "id": account_id,
            "user_id": USER_ID,
            "description": description,
            "balance": {"value": balance, "currency": "EUR"},
        }
    }


class FakeBunq:
    """
    Minimal Bunq server: installation, device registration, sessions,
    accounts and paginated payments. Responses are signed with server_keys.
    """

    installation_token = "installation-token"
    session_token = "session-token"
    api_key = "sandbox_api_key"

    def __init__(self, server_keys: crypto.KeyPair):
        self.server_keys = server_keys
        self.client_public_key = None
        self.requests: list[httpx.Request] = []
        self.accounts = [account_item()]
        self.payment_pages: list[list[dict]] = [[]]
        self.fail_payment_page: Optional[int] = None
        self.tamper_signature = False
        self.omit_signature = False
        self.device_registrations = 0
        self.sessions = 0
        self.clients: list[httpx.AsyncClient] = []

    # ── plumbing ──

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def http(self) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=self.transport())
        self.clients.append(client)
        return client

    async def aclose(self) -> None:
        for client in self.clients:
            await client.aclose()

    def respond(self, payload: dict, status: int = 200) -> httpx.Response:
        body = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if not self.omit_signature:
            signature = crypto.sign(body, self.server_keys.private_key)
            if self.tamper_signature:
                signature = crypto.sign(body + b" ", self.server_keys.private_key)
            headers["X-Bunq-Server-Signature"] = signature
        return httpx.Response(status, content=body, headers=headers)

    def error(self, status: int, description: str) -> httpx.Response:
        return self.respond({"Error": [{"error_description": description}]}, status=status)

    def _signed_by_client(self, request: httpx.Request) -> bool:
        signature = request.headers.get("X-Bunq-Client-Signature")
        if not signature or self.client_public_key is None:
            return False
        return crypto.verify(request.content, signature, self.client_public_key)

    # ── routes ──

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        token = request.headers.get("X-Bunq-Client-Authentication")

        if path == "/v1/installation" and request.method == "POST":
            body = json.loads(request.content)
            self.client_public_key = crypto.import_public_key_pem(body["client_public_key"])
            return self.respond({"Response": [
                {"Id": {"id": 1}},
                {"Token": {"id": 2, "token": self.installation_token}},
                {"ServerPublicKey": {"server_public_key": crypto.export_public_key_pem(self.server_keys.public_key)}},
            ]})

        if path == "/v1/device-server" and request.method == "POST":
            if token != self.installation_token or not self._signed_by_client(request):
                return self.error(401, "Insufficient authentication.")
            body = json.loads(request.content)
            if body["secret"] != self.api_key:
                return self.error(400, "User credentials are incorrect.")
            self.device_registrations += 1
            return self.respond({"Response": [{"Id": {"id": 7}}]})

        if path == "/v1/session-server" and request.method == "POST":
            if token != self.installation_token or not self._signed_by_client(request):
                return self.error(401, "Insufficient authentication.")
            self.sessions += 1
            return self.respond({"Response": [
                {"Id": {"id": 3}},
                {"Token": {"id": 4, "token": self.session_token}},
                {"UserPerson": {"id": USER_ID, "display_name": "Tester"}},
            ]})

        if token != self.session_token:
            return self.error(401, "Insufficient authentication.")

        accounts_path = f"/v1/user/{USER_ID}/monetary-account"
        if path == accounts_path:
            return self.respond({"Response": self.accounts})

        if path.startswith(accounts_path + "/") and path.endswith("/payment"):
            index = int(request.url.params.get("older_id", 0))
            if self.fail_payment_page == index:
                return self.error(503, "Service unavailable.")
            older_url = None
            if index + 1 < len(self.payment_pages):
                older_url = f"{path}?older_id={index + 1}"
            return self.respond({
                "Response": self.payment_pages[index],
                "Pagination": {"future_url": None, "newer_url": None, "older_url": older_url},
            })

        if path.startswith(accounts_path + "/"):
            account_id = path.rsplit("/", 1)[1]
            for item in self.accounts:
                if str(item["MonetaryAccountBank"]["id"]) == account_id:
                    return self.respond({"Response": [item]})
            return self.error(404, "Monetary account not found.")

        return self.error(404, f"No route for {request.method} {path}")


@pytest.fixture
def bunq(server_keys):
    fake = FakeBunq(server_keys)
    yield fake
    asyncio.run(fake.aclose())


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
