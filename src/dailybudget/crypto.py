"""
RSA key handling and request/response signatures.

Bunq authenticates both directions with RSA PKCS#1 v1.5 signatures over the
SHA-256 digest of the raw HTTP body, base64-encoded in a header.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import (
    KeyExportError,
    KeyGenerationError,
    KeyImportError,
    SigningError,
    VerificationInputError,
)

KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
PEM_LINE_LENGTH = 64

_PUBLIC_FORMATS = {
    "PUBLIC": serialization.PublicFormat.SubjectPublicKeyInfo,
    "RSA PUBLIC": serialization.PublicFormat.PKCS1,
}


@dataclass(frozen=True)
class KeyPair:
    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey


def generate_key_pair(key_size: int = KEY_SIZE) -> KeyPair:
    """Create a fresh RSA key pair for a new installation."""
    try:
        private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyGenerationError(f"RSA key generation failed: {e}") from e
    return KeyPair(private_key=private_key, public_key=private_key.public_key())


def export_public_key_pem(key: rsa.RSAPublicKey, kind: str = "PUBLIC") -> str:
    """DER-encode a public key and wrap it in 64-column PEM framing."""
    public_format = _PUBLIC_FORMATS.get(kind)
    if public_format is None:
        raise KeyExportError(f"Unsupported PEM kind: {kind}")
    try:
        der = key.public_bytes(encoding=serialization.Encoding.DER, format=public_format)
    except (AttributeError, ValueError, TypeError) as e:
        raise KeyExportError(f"Cannot export public key: {e}") from e

    encoded = base64.b64encode(der).decode("ascii")
    lines = [f"-----BEGIN {kind} KEY-----"]
    lines.extend(
        encoded[i:i + PEM_LINE_LENGTH] for i in range(0, len(encoded), PEM_LINE_LENGTH)
    )
    lines.append(f"-----END {kind} KEY-----")
    return "\n".join(lines)


def import_public_key_pem(pem: str) -> rsa.RSAPublicKey:
    """Load an RSA public key from PEM (SubjectPublicKeyInfo or PKCS#1)."""
    # Handle literal '\n' sequences from JSON-escaped or env-provided keys.
    if "\\n" in pem:
        pem = pem.replace("\\n", "\n")

    lines = [line.strip() for line in pem.strip().splitlines() if line.strip()]
    if len(lines) < 3 or not lines[0].startswith("-----BEGIN") or not lines[-1].startswith("-----END"):
        raise KeyImportError("Malformed PEM: missing BEGIN/END framing")

    try:
        der = base64.b64decode("".join(lines[1:-1]), validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyImportError(f"Malformed PEM body: {e}") from e

    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyImportError(f"Cannot decode public key: {e}") from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyImportError(f"Expected an RSA public key, got {type(key).__name__}")
    return key


def export_private_key_pem(key: rsa.RSAPrivateKey) -> str:
    try:
        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")
    except (AttributeError, ValueError, TypeError) as e:
        raise KeyExportError(f"Cannot export private key: {e}") from e


def import_private_key_pem(pem: str) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyImportError(f"Cannot decode private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyImportError(f"Expected an RSA private key, got {type(key).__name__}")
    return key


def sign(payload: bytes, private_key: rsa.RSAPrivateKey) -> str:
    """Return the base64 RSA-SHA256 (PKCS#1 v1.5) signature of payload."""
    try:
        signature = private_key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
    except (AttributeError, ValueError, TypeError) as e:
        raise SigningError(f"Signing failed: {e}") from e
    return base64.b64encode(signature).decode("ascii")


def verify(payload: bytes, signature_b64: str, public_key: rsa.RSAPublicKey) -> bool:
    """
    Check a base64 signature over payload.

    A well-formed signature that does not match returns False; only an
    undecodable signature raises VerificationInputError.
    """
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise VerificationInputError(f"Signature is not valid base64: {e}") from e

    try:
        public_key.verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True
