"""
Typed records for Bunq API payloads and derived budget state.

Each ``from_api`` constructor validates one response item and raises
MalformedResponseError instead of silently producing empty values.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import MalformedResponseError
from .money import parse_amount

_CREATED_FORMATS = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S")
_USER_KINDS = ("UserPerson", "UserCompany", "UserApiKey")


@dataclass(frozen=True)
class AuthorizationBundle:
    """A fully bootstrapped client identity."""

    private_key: rsa.RSAPrivateKey
    server_public_key: rsa.RSAPublicKey
    installation_token: str
    api_key: str

    def __repr__(self) -> str:
        return f"AuthorizationBundle(installation_token='{self.installation_token[:6]}…')"


@dataclass(frozen=True)
class UserPreferences:
    account_id: str
    account_name: str
    user_id: str

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "account_name": self.account_name,
            "user_id": self.user_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "UserPreferences":
        return cls(
            account_id=str(d["account_id"]),
            account_name=str(d["account_name"]),
            user_id=str(d["user_id"]),
        )


@dataclass(frozen=True)
class Pagination:
    newer_url: Optional[str] = None
    older_url: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Any) -> "Pagination":
        if not isinstance(raw, dict):
            raise MalformedResponseError("Pagination must be an object")
        return cls(
            newer_url=_optional_str(raw, "newer_url"),
            older_url=_optional_str(raw, "older_url"),
        )


@dataclass(frozen=True)
class InstallationResult:
    token: str
    server_public_key_pem: str

    @classmethod
    def from_api(cls, items: list[Any]) -> "InstallationResult":
        token = _find_wrapped(items, "Token")
        server_key = _find_wrapped(items, "ServerPublicKey")
        if token is None or server_key is None:
            raise MalformedResponseError("Installation response lacks Token or ServerPublicKey")
        return cls(
            token=_require_str(token, "token"),
            server_public_key_pem=_require_str(server_key, "server_public_key"),
        )


@dataclass(frozen=True)
class SessionResult:
    token: str
    user_id: str

    def __repr__(self) -> str:
        return f"SessionResult(user_id='{self.user_id}')"

    @classmethod
    def from_api(cls, items: list[Any]) -> "SessionResult":
        token = _find_wrapped(items, "Token")
        user = None
        for kind in _USER_KINDS:
            user = _find_wrapped(items, kind)
            if user is not None:
                break
        if token is None or user is None:
            raise MalformedResponseError("Session response lacks Token or user")
        return cls(token=_require_str(token, "token"), user_id=_require_id(user, "id"))


@dataclass(frozen=True)
class MonetaryAccount:
    id: str
    user_id: str
    description: str
    balance: Decimal
    currency: str = "EUR"

    @classmethod
    def from_api(cls, item: Any) -> "MonetaryAccount":
        account = _unwrap(item, prefix="MonetaryAccount")
        balance = _require_dict(account, "balance")
        return cls(
            id=_require_id(account, "id"),
            user_id=_require_id(account, "user_id"),
            description=_require_str(account, "description"),
            balance=_require_amount(balance, "value"),
            currency=str(balance.get("currency") or "EUR"),
        )


@dataclass(frozen=True)
class PaymentRecord:
    id: int
    created_at: datetime
    description: str
    amount: Decimal
    balance_after: Decimal

    @classmethod
    def from_api(cls, item: Any) -> "PaymentRecord":
        payment = _unwrap(item, prefix="Payment")
        payment_id = payment.get("id")
        if not isinstance(payment_id, int) or isinstance(payment_id, bool):
            raise MalformedResponseError(f"Payment id must be an integer, got {payment_id!r}")
        return cls(
            id=payment_id,
            created_at=parse_created(_require_str(payment, "created")),
            description=str(payment.get("description") or ""),
            amount=_require_amount(_require_dict(payment, "amount"), "value"),
            balance_after=_require_amount(_require_dict(payment, "balance_after_mutation"), "value"),
        )


@dataclass(frozen=True)
class Balance:
    """Derived daily budget state shown to the user."""

    computed_at: datetime
    today_left_percent: float
    today_left: float
    balance: float
    days_left: int

    def is_fresh(self, now: datetime, ttl_seconds: int) -> bool:
        """True if this value was computed less than ttl_seconds before now."""
        return self.computed_at > now - timedelta(seconds=ttl_seconds)

    def to_dict(self) -> dict:
        return {
            "computed_at": self.computed_at.isoformat(),
            "today_left_percent": self.today_left_percent,
            "today_left": self.today_left,
            "balance": self.balance,
            "days_left": self.days_left,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Balance":
        computed_at = datetime.fromisoformat(d["computed_at"])
        if computed_at.tzinfo is None:
            computed_at = computed_at.replace(tzinfo=timezone.utc)
        return cls(
            computed_at=computed_at,
            today_left_percent=float(d["today_left_percent"]),
            today_left=float(d["today_left"]),
            balance=float(d["balance"]),
            days_left=int(d["days_left"]),
        )


def parse_created(value: str) -> datetime:
    """Parse a Bunq ``created`` timestamp; the API reports them in UTC."""
    for fmt in _CREATED_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise MalformedResponseError(f"Unrecognized timestamp: {value!r}")


def _find_wrapped(items: list[Any], key: str) -> Optional[dict]:
    for item in items:
        if isinstance(item, dict) and isinstance(item.get(key), dict):
            return item[key]
    return None


def _unwrap(item: Any, prefix: str) -> dict:
    """Return the inner object of a ``{"<Type>": {...}}`` wrapper."""
    if isinstance(item, dict):
        for key, value in item.items():
            if key.startswith(prefix) and isinstance(value, dict):
                return value
    raise MalformedResponseError(f"Expected a {prefix} object, got {_describe(item)}")


def _require_dict(obj: dict, key: str) -> dict:
    value = obj.get(key)
    if not isinstance(value, dict):
        raise MalformedResponseError(f"Field '{key}' must be an object")
    return value


def _require_str(obj: dict, key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedResponseError(f"Field '{key}' must be a non-empty string")
    return value


def _optional_str(obj: dict, key: str) -> Optional[str]:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedResponseError(f"Field '{key}' must be a string or null")
    return value


def _require_id(obj: dict, key: str) -> str:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, str)) or value == "":
        raise MalformedResponseError(f"Field '{key}' must be an identifier")
    return str(value)


def _require_amount(obj: dict, key: str) -> Decimal:
    value = obj.get(key)
    if not isinstance(value, str):
        raise MalformedResponseError(f"Field '{key}' must be a decimal string")
    try:
        return parse_amount(value)
    except ValueError as e:
        raise MalformedResponseError(str(e)) from e


def _describe(item: Any) -> str:
    if isinstance(item, dict):
        return "object with keys " + ", ".join(sorted(item)) if item else "empty object"
    return type(item).__name__
