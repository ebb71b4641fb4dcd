"""Encryption of refresh tokens at rest (AES-256-GCM)."""

import base64
import hmac
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12


def validate_encryption_key(enc_key: str | bytes) -> bytes:
    """
    Validate and convert the encryption key to its 32-byte form.

    String keys must be base64-encoded.

    Raises:
        ValueError: If key is invalid format or wrong length

    Example:
        >>> import secrets, base64
        >>> key = base64.b64encode(secrets.token_bytes(32)).decode()
        >>> len(validate_encryption_key(key))
        32
    """
    if isinstance(enc_key, str):
        try:
            enc_key_bytes = base64.b64decode(enc_key, validate=True)
        except ValueError as e:
            raise ValueError("Encryption key must be base64-encoded") from e
    else:
        enc_key_bytes = enc_key

    if len(enc_key_bytes) != 32:
        raise ValueError(
            f"Encryption key must be exactly 32 bytes, got {len(enc_key_bytes)} bytes"
        )

    return enc_key_bytes


def seal_refresh_token(key: bytes, token: str) -> bytes:
    """Encrypt a refresh token; the random nonce is prepended to the ciphertext."""
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(validate_encryption_key(key)).encrypt(
        nonce, token.encode("utf-8"), None
    )


def open_refresh_token(key: bytes, blob: bytes) -> str:
    """Decrypt a blob produced by ``seal_refresh_token``.

    Raises:
        ValueError: If the blob is too short
        cryptography.exceptions.InvalidTag: If the key is wrong or data was tampered with
    """
    if len(blob) < NONCE_SIZE:
        raise ValueError("Encrypted blob too short (must include 12-byte nonce)")
    plaintext = AESGCM(validate_encryption_key(key)).decrypt(
        blob[:NONCE_SIZE], blob[NONCE_SIZE:], None
    )
    return plaintext.decode("utf-8")


def refresh_token_matches(key: bytes, stored: bytes | None, presented: str) -> bool:
    """True if ``presented`` is the refresh token currently stored for a user."""
    if not stored:
        return False
    try:
        current = open_refresh_token(key, stored)
    except (InvalidTag, ValueError):
        return False
    return hmac.compare_digest(current, presented)
