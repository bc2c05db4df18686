"""
End-to-end run against the Bunq sandbox.

Creates a sandbox user, registers a device, selects the first account and
prints today's budget. Credentials live in a temporary directory.
"""

import asyncio
import sys
import tempfile
from pathlib import Path

import httpx

from dailybudget import DailyBudgetClient, FileCredentialStore, load_config

SANDBOX_URL = "https://public-api.sandbox.bunq.com"


def create_sandbox_api_key() -> str:
    response = httpx.post(
        f"{SANDBOX_URL}/v1/sandbox-user-person",
        headers={"Cache-Control": "no-cache", "User-Agent": "bunq-Daily-Budget/1.00"},
        timeout=30,
    )
    response.raise_for_status()
    return response.json()["Response"][0]["ApiKey"]["api_key"]


async def run(home: Path):
    client = DailyBudgetClient(FileCredentialStore(home), config=load_config(base_url=SANDBOX_URL))

    print("1️⃣  Creating sandbox user...")
    api_key = create_sandbox_api_key()
    print("   ✅ Got sandbox API key")

    print("2️⃣  Registering device...")
    await client.setup(api_key)
    print("   ✅ Installation and device registered")

    print("3️⃣  Listing accounts...")
    accounts = await client.accounts()
    for account in accounts:
        print(f"   {account.id}  {account.description}  {account.balance} {account.currency}")
    if not accounts:
        print("   ❌ Sandbox user has no accounts")
        sys.exit(1)

    print("4️⃣  Selecting first account...")
    prefs = await client.select_account(accounts[0].id)
    print(f"   ✅ {prefs.account_name}")

    print("5️⃣  Computing today's budget...")
    balance = await client.refresh_balance(force=True)
    print(f"   Today left: {balance.today_left:.2f} ({balance.today_left_percent:.0%})")
    print(f"   Balance:    {balance.balance:.2f}")
    print(f"   Days left:  {balance.days_left}")


def main():
    print("🚀 Daily budget E2E: Bunq sandbox")
    print("=" * 40)
    with tempfile.TemporaryDirectory() as home:
        asyncio.run(run(Path(home)))
    print("✅ Done")


if __name__ == "__main__":
    main()
