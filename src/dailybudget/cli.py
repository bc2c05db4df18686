"""
Daily budget CLI: how much can I spend today?

Commands:
    daily-budget setup      Register this device with a Bunq API key
    daily-budget accounts   List monetary accounts
    daily-budget select     Choose the account to budget
    daily-budget balance    Show today's budget
    daily-budget clear      Forget all stored credentials and data
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
from click.core import ParameterSource

from . import __version__
from .client import DailyBudgetClient
from .config import default_home, load_config
from .credentials import FileCredentialStore
from .errors import AccountNotSelectedError, DailyBudgetError, NotAuthorizedError
from .money import format_amount, format_percent

logger = logging.getLogger(__name__)


def _make_client() -> DailyBudgetClient:
    try:
        config = load_config()
    except ValueError as exc:
        click.echo(f"❌ Invalid configuration: {exc}", err=True)
        sys.exit(1)
    return DailyBudgetClient(FileCredentialStore(default_home()), config=config)


def _run(coro):
    """Run a client coroutine, turning library errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except (NotAuthorizedError, AccountNotSelectedError) as exc:
        click.echo(f"❌ {exc}", err=True)
        sys.exit(1)
    except DailyBudgetError as exc:
        logger.debug("Command failed", exc_info=True)
        click.echo(f"❌ {type(exc).__name__}: {exc}", err=True)
        sys.exit(1)
    except ValueError as exc:
        click.echo(f"❌ {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log HTTP calls and progress")
def main(verbose: bool):
    """Daily budget: safe-to-spend amount from your Bunq payments."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs full URLs at INFO; keep them behind --verbose.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@main.command()
@click.option("--api-key", prompt=True, hide_input=True, help="Bunq API key")
@click.option(
    "--unsafe-allow-key-arg",
    is_flag=True,
    default=False,
    help="Allow passing --api-key via argv (unsafe; can leak in shell/process history).",
)
def setup(api_key: str, unsafe_allow_key_arg: bool):
    """Register this device and store a new authorization."""
    ctx = click.get_current_context(silent=True)
    key_from_argv = (
        ctx is not None
        and ctx.get_parameter_source("api_key") == ParameterSource.COMMANDLINE
    )
    if key_from_argv and not unsafe_allow_key_arg:
        click.echo(
            "❌ Refusing --api-key from argv. Re-run with prompt input or pass "
            "--unsafe-allow-key-arg to acknowledge the risk.",
            err=True,
        )
        sys.exit(1)

    client = _make_client()
    click.echo("🔑 Generating key pair and registering device...")
    _run(client.setup(api_key))
    click.echo("✅ Device registered. Next: `daily-budget accounts` and `daily-budget select <id>`.")


@main.command()
def accounts():
    """List monetary accounts of the authorized user."""
    client = _make_client()
    found = _run(client.accounts())
    if not found:
        click.echo("No accounts found.")
        return

    selected = client.store.load_user_preferences()
    for account in found:
        marker = "*" if selected and selected.account_id == account.id else " "
        click.echo(
            f" {marker} {account.id:>10}  {account.description:<30} "
            f"{format_amount(account.balance)} {account.currency}"
        )


@main.command()
@click.argument("account_id")
def select(account_id: str):
    """Choose the account the daily budget is computed for."""
    client = _make_client()
    prefs = _run(client.select_account(account_id))
    click.echo(f"✅ Selected {prefs.account_name} ({prefs.account_id})")


@main.command()
@click.option("--force", is_flag=True, help="Ignore the cached balance")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable JSON")
def balance(force: bool, as_json: bool):
    """Show how much is safe to spend today."""
    client = _make_client()
    result = _run(client.refresh_balance(force=force))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(f"📊 Today left:  {format_amount(result.today_left)} ({format_percent(result.today_left_percent)})")
    click.echo(f"   Balance:     {format_amount(result.balance)}")
    click.echo(f"   Days left:   {result.days_left}")
    click.echo(f"   As of:       {result.computed_at.strftime('%Y-%m-%d %H:%M')}")


@main.command()
@click.confirmation_option(prompt="Remove the stored key pair, tokens and cached data?")
def clear():
    """Forget all stored credentials, preferences and cached balance."""
    _make_client().clear()
    click.echo("✅ Cleared.")


if __name__ == "__main__":
    main()
