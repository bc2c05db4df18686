"""
Daily budget: how much is safe to spend today before the next salary.

Signed Bunq API client:
Bootstrap a device once -> open a session per refresh -> page back through
today's payments -> derive today's allowance and the reserved balance.
"""

__version__ = "0.1.0"

from .api import ApiResponse, BunqApi
from .budget import (
    DAILY_ALLOWANCE,
    RESET_DAY,
    compute_balance,
    days_until_reset,
    next_reset_date,
)
from .client import DailyBudgetClient
from .config import ClientConfig, load_config
from .credentials import CredentialStore, FileCredentialStore
from .crypto import (
    KeyPair,
    export_public_key_pem,
    generate_key_pair,
    import_public_key_pem,
    sign,
    verify,
)
from .models import (
    AuthorizationBundle,
    Balance,
    MonetaryAccount,
    Pagination,
    PaymentRecord,
    UserPreferences,
)
from .pagination import PageDirection, older_until, paginate
from .session import Handshake, open_session, setup_authorization

__all__ = [
    "BunqApi", "ApiResponse", "DailyBudgetClient", "ClientConfig", "load_config",
    "CredentialStore", "FileCredentialStore",
    "KeyPair", "generate_key_pair", "export_public_key_pem", "import_public_key_pem", "sign", "verify",
    "AuthorizationBundle", "Balance", "MonetaryAccount", "Pagination", "PaymentRecord", "UserPreferences",
    "PageDirection", "paginate", "older_until",
    "Handshake", "setup_authorization", "open_session",
    "DAILY_ALLOWANCE", "RESET_DAY", "compute_balance", "days_until_reset", "next_reset_date",
]
