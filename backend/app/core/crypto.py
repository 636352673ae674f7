"""
Destination address encryption.

Addresses are stored as ``<nonce b64>:<ciphertext b64>`` using AES-256-GCM
with the base64-encoded 32 byte key from ``settings.encryption_key``.
"""

import base64
import binascii
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from backend.app.core.config import settings
from backend.app.core.exceptions import EncryptionConfigError

NONCE_BYTES = 12


def _load_key(encoded: Optional[str]) -> bytes:
    if not encoded:
        raise EncryptionConfigError("ENCRYPTION_KEY is not configured")
    try:
        key = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise EncryptionConfigError()
    if len(key) != 32:
        raise EncryptionConfigError()
    return key


def encrypt_address(plaintext: str, key: Optional[str] = None) -> str:
    """Encrypt ``plaintext`` with a fresh random nonce."""
    aead = AESGCM(_load_key(key or settings.encryption_key))
    nonce = os.urandom(NONCE_BYTES)
    ciphertext = aead.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce).decode("ascii") + ":" + base64.b64encode(ciphertext).decode("ascii")


def decrypt_address(token: str, key: Optional[str] = None) -> str:
    """
    Reverse ``encrypt_address``.

    Raises:
        ValueError: token is malformed or was not produced with this key
    """
    nonce_part, sep, cipher_part = token.partition(":")
    if not sep or not nonce_part or not cipher_part:
        raise ValueError("Invalid encrypted data format")
    aead = AESGCM(_load_key(key or settings.encryption_key))
    try:
        plaintext = aead.decrypt(base64.b64decode(nonce_part), base64.b64decode(cipher_part), None)
    except (InvalidTag, binascii.Error) as exc:
        raise ValueError("Encrypted address could not be decrypted") from exc
    return plaintext.decode("utf-8")
