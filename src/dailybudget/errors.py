"""
Daily budget error types.

Specific exceptions for different failure modes, enabling callers
to handle each case appropriately (retry, re-run setup, alert, etc.).
"""

from __future__ import annotations

from typing import Optional


class DailyBudgetError(Exception):
    """Base error for all Daily budget operations."""
    pass


# Crypto errors
class CryptoError(DailyBudgetError):
    """Base error for key handling and signature failures."""
    pass


class KeyGenerationError(CryptoError):
    """The crypto provider could not create an RSA key pair."""
    pass


class KeyExportError(CryptoError):
    """A key could not be serialized to PEM."""
    pass


class KeyImportError(CryptoError):
    """A PEM document could not be turned back into a key."""
    pass


class SigningError(CryptoError):
    """Creating a request signature failed."""
    pass


class VerificationInputError(CryptoError):
    """Signature to verify is not valid base64."""
    pass


# Transport errors
class TransportError(DailyBudgetError):
    """Network or HTTP level failure. Safe to retry the whole unit of work."""
    pass


class HttpStatusError(TransportError):
    """Server answered with an HTTP status >= 400."""
    def __init__(self, status_code: int, description: Optional[str] = None):
        self.status_code = status_code
        self.description = description
        message = f"HTTP {status_code}"
        if description:
            message = f"{message}: {description}"
        super().__init__(message)


class RateLimitError(HttpStatusError):
    """Server rate limited the client (429)."""
    def __init__(self, retry_after: float = 3.0, description: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(429, description)


# Server signature errors
class SignatureError(DailyBudgetError):
    """Server response could not be authenticated."""
    pass


class MissingSignatureError(SignatureError):
    """Response carries no X-Bunq-Server-Signature header."""
    pass


class SignatureMismatchError(SignatureError):
    """Response body does not match the server signature."""
    pass


# Payload errors
class ApiError(DailyBudgetError):
    """Server returned a structured error payload."""
    def __init__(self, description: str):
        self.description = description
        super().__init__(description)


class MalformedResponseError(DailyBudgetError):
    """Response payload does not have the expected shape."""
    pass


class PaginationLimitError(DailyBudgetError):
    """Listing did not terminate within the configured page limit."""
    def __init__(self, max_pages: int):
        self.max_pages = max_pages
        super().__init__(f"Pagination stopped after {max_pages} pages without reaching the end")


# Credential errors
class CredentialsError(DailyBudgetError):
    """Base error for stored credential problems."""
    pass


class StaleCredentialsError(CredentialsError):
    """Old and new credentials would be mixed."""
    pass


class NotAuthorizedError(CredentialsError):
    """No authorization stored; setup has not been run."""
    pass


class AccountNotSelectedError(CredentialsError):
    """No monetary account has been selected yet."""
    pass
