"""
Installation bootstrap and per-refresh sessions.

Bootstrap flow (once per installation):
1. Generate an RSA key pair
2. POST /v1/installation with the public key (unauthenticated)
   -> installation token + server public key
3. POST /v1/device-server with the API key, signed, using the installation token
4. Hand the AuthorizationBundle to the credential store

The server public key is trusted as received in step 2 (trust on first use).
There is no pinning or other root of trust.

Every unit of work then opens a fresh session (POST /v1/session-server) and
uses that session token for data calls. Session tokens are never stored.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from . import crypto
from .api import BunqApi
from .config import ClientConfig
from .credentials import CredentialStore
from .errors import StaleCredentialsError
from .models import AuthorizationBundle

logger = logging.getLogger(__name__)


class Handshake:
    """Runs the installation and device registration steps."""

    def __init__(self, http: httpx.AsyncClient, config: ClientConfig):
        self.http = http
        self.config = config

    async def run(self, api_key: str, key_pair: Optional[crypto.KeyPair] = None) -> AuthorizationBundle:
        """
        Bootstrap a client identity for api_key.

        Any failure raises and nothing is returned; the caller persists the
        bundle only after every step succeeded.
        """
        if not api_key or not api_key.strip():
            raise ValueError("API key is required")
        api_key = api_key.strip()

        key_pair = key_pair or crypto.generate_key_pair()
        public_key_pem = crypto.export_public_key_pem(key_pair.public_key)

        logger.info("Creating installation")
        unauthenticated = BunqApi(http=self.http, config=self.config)
        installation = await unauthenticated.installation(public_key_pem)
        server_public_key = crypto.import_public_key_pem(installation.server_public_key_pem)

        logger.info("Registering device %r", self.config.device_description)
        api = BunqApi(
            http=self.http,
            config=self.config,
            token=installation.token,
            private_key=key_pair.private_key,
            server_public_key=server_public_key,
        )
        await api.device_server(
            description=self.config.device_description,
            api_key=api_key,
            permitted_ips=list(self.config.permitted_ips),
        )

        return AuthorizationBundle(
            private_key=key_pair.private_key,
            server_public_key=server_public_key,
            installation_token=installation.token,
            api_key=api_key,
        )


async def setup_authorization(
    api_key: str,
    store: CredentialStore,
    http: httpx.AsyncClient,
    config: ClientConfig,
    key_pair: Optional[crypto.KeyPair] = None,
) -> AuthorizationBundle:
    """Clear previous credentials, bootstrap, and persist the new bundle."""
    if not api_key or not api_key.strip():
        raise ValueError("API key is required")
    store.clear_all()
    if store.load_authorization() is not None:
        raise StaleCredentialsError("Previous authorization survived clearing; refusing to mix credentials")

    bundle = await Handshake(http, config).run(api_key, key_pair=key_pair)
    store.store_authorization(bundle)
    logger.info("Setup complete")
    return bundle


async def open_session(
    bundle: AuthorizationBundle,
    http: httpx.AsyncClient,
    config: ClientConfig,
) -> tuple[BunqApi, str]:
    """Start a session; returns an API bound to the session token and the user id."""
    api = BunqApi(
        http=http,
        config=config,
        token=bundle.installation_token,
        private_key=bundle.private_key,
        server_public_key=bundle.server_public_key,
    )
    session = await api.session_server(bundle.api_key)
    logger.debug("Opened session for user %s", session.user_id)
    return api.with_token(session.token), session.user_id
