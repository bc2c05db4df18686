"""
Client configuration.

Values resolve from explicit arguments, then environment variables, then
the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_BASE_URL = "https://api.bunq.com"
DEFAULT_USER_AGENT = "bunq-Daily-Budget/1.00"
DEFAULT_DAILY_ALLOWANCE = 73.0  # €2200 per 30 days
DEFAULT_RESET_DAY = 25
DEFAULT_CACHE_TTL_SECONDS = 15 * 60
DEFAULT_MAX_PAGES = 50
DEFAULT_DEVICE_DESCRIPTION = "Daily budget app"

API_URL_ENV = "DAILY_BUDGET_API_URL"
DAILY_ALLOWANCE_ENV = "DAILY_BUDGET_DAILY_ALLOWANCE"
RESET_DAY_ENV = "DAILY_BUDGET_RESET_DAY"
MAX_PAGES_ENV = "DAILY_BUDGET_MAX_PAGES"
HOME_ENV = "DAILY_BUDGET_HOME"


@dataclass(frozen=True)
class ClientConfig:
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0
    daily_allowance: float = DEFAULT_DAILY_ALLOWANCE
    reset_day: int = DEFAULT_RESET_DAY
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    max_pages: Optional[int] = DEFAULT_MAX_PAGES
    device_description: str = DEFAULT_DEVICE_DESCRIPTION
    permitted_ips: tuple[str, ...] = ("*",)

    def __post_init__(self):
        if self.daily_allowance <= 0:
            raise ValueError(f"Daily allowance must be positive, got {self.daily_allowance}")
        # Every month must contain the reset day.
        if not 1 <= self.reset_day <= 28:
            raise ValueError(f"Reset day must be between 1 and 28, got {self.reset_day}")
        if self.max_pages is not None and self.max_pages < 1:
            raise ValueError(f"Max pages must be at least 1, got {self.max_pages}")


def load_config(
    *,
    base_url: str | None = None,
    daily_allowance: float | None = None,
    reset_day: int | None = None,
    max_pages: int | None = None,
) -> ClientConfig:
    """Build a ClientConfig from arguments and DAILY_BUDGET_* environment variables."""
    resolved_max_pages = max_pages
    if resolved_max_pages is None:
        raw = os.getenv(MAX_PAGES_ENV)
        if raw is not None and raw.strip().lower() in {"none", "0", "unlimited"}:
            resolved_max_pages = None
        else:
            resolved_max_pages = _env_number(MAX_PAGES_ENV, int, DEFAULT_MAX_PAGES)

    return ClientConfig(
        base_url=(base_url or os.getenv(API_URL_ENV) or DEFAULT_BASE_URL).rstrip("/"),
        daily_allowance=(
            daily_allowance
            if daily_allowance is not None
            else _env_number(DAILY_ALLOWANCE_ENV, float, DEFAULT_DAILY_ALLOWANCE)
        ),
        reset_day=(
            reset_day if reset_day is not None else _env_number(RESET_DAY_ENV, int, DEFAULT_RESET_DAY)
        ),
        max_pages=resolved_max_pages,
    )


def default_home() -> Path:
    """Directory for the file-backed credential store."""
    override = os.getenv(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".daily-budget"


def _env_number(name: str, cast, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from e
