"""
Daily budget client.

Flow per refresh:
1. Load the stored authorization and selected account
2. Reuse the cached balance if it is younger than the cache TTL
3. Otherwise open a session, page back through today's payments,
   compute the balance and cache it
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

import httpx

from .budget import as_local, compute_balance, start_of_day
from .config import ClientConfig
from .credentials import CredentialStore
from .errors import AccountNotSelectedError, NotAuthorizedError
from .models import AuthorizationBundle, Balance, MonetaryAccount, UserPreferences
from .pagination import older_until
from .session import open_session, setup_authorization

logger = logging.getLogger(__name__)


class DailyBudgetClient:
    """
    Entry point for one user's daily budget.

    Holds no credentials of its own: everything is read from the injected
    store at the start of each operation. Concurrent refreshes are not
    coordinated here.
    """

    def __init__(
        self,
        store: CredentialStore,
        config: Optional[ClientConfig] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.config = config or ClientConfig()
        self._http = http

    @asynccontextmanager
    async def _http_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            yield client

    def authorization(self) -> AuthorizationBundle:
        bundle = self.store.load_authorization()
        if bundle is None:
            raise NotAuthorizedError("No authorization stored; run setup first")
        return bundle

    def preferences(self) -> UserPreferences:
        prefs = self.store.load_user_preferences()
        if prefs is None:
            raise AccountNotSelectedError("No account selected; pick one first")
        return prefs

    async def setup(self, api_key: str) -> None:
        """Replace any stored identity with a freshly bootstrapped one."""
        async with self._http_client() as http:
            await setup_authorization(api_key, self.store, http, self.config)

    async def accounts(self) -> list[MonetaryAccount]:
        bundle = self.authorization()
        async with self._http_client() as http:
            api, user_id = await open_session(bundle, http, self.config)
            return await api.monetary_accounts(user_id)

    async def select_account(self, account_id: str) -> UserPreferences:
        bundle = self.authorization()
        async with self._http_client() as http:
            api, user_id = await open_session(bundle, http, self.config)
            account = await api.monetary_account(user_id, account_id)

        prefs = UserPreferences(
            account_id=account.id,
            account_name=account.description,
            user_id=account.user_id,
        )
        self.store.store_user_preferences(prefs)
        # A cached balance belongs to the previously selected account.
        self.store.clear_cached_balance()
        logger.info("Selected account %s (%s)", prefs.account_id, prefs.account_name)
        return prefs

    async def today_balance(self, now: Optional[datetime] = None) -> Balance:
        """Fetch today's payment history and compute the balance (no caching)."""
        bundle = self.authorization()
        prefs = self.preferences()
        now = as_local(now)

        async with self._http_client() as http:
            api, _ = await open_session(bundle, http, self.config)
            payments = await api.monetary_account_payments(
                prefs.user_id,
                prefs.account_id,
                decide=older_until(start_of_day(now)),
            )

        logger.debug("Fetched %d payments for account %s", len(payments), prefs.account_id)
        return compute_balance(
            payments,
            now=now,
            daily_allowance=self.config.daily_allowance,
            reset_day=self.config.reset_day,
        )

    async def refresh_balance(self, now: Optional[datetime] = None, force: bool = False) -> Balance:
        """Return the cached balance while fresh, otherwise recompute and cache it."""
        now = as_local(now)
        if not force:
            cached = self.store.load_cached_balance()
            if cached is not None and cached.is_fresh(now, self.config.cache_ttl_seconds):
                logger.debug("Reusing cached balance from %s", cached.computed_at.isoformat())
                return cached

        balance = await self.today_balance(now=now)
        self.store.store_cached_balance(balance)
        return balance

    def clear(self) -> None:
        self.store.clear_all()

