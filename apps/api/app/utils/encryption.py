"""
Encryption at rest for custodial private keys.

AES-256-GCM with a fresh 12-byte IV per call. The key is derived from the
server passphrase with scrypt and a fixed salt, so the same passphrase always
yields the same key. Stored form: ``"<iv hex>:<ciphertext hex>"``.
"""
import logging
from functools import lru_cache
from typing import Optional
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from app.config import settings
from app.exceptions import DecryptionError

logger = logging.getLogger(__name__)

IV_LENGTH = 12
KEY_LENGTH = 32


@lru_cache(maxsize=8)
def _derive_key(passphrase: str, salt: str) -> bytes:
    kdf = Scrypt(salt=salt.encode("utf-8"), length=KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt_secret(secret: bytes, passphrase: Optional[str] = None) -> str:
    """Encrypt raw secret bytes into an ``iv:ciphertext`` hex string."""
    key = _derive_key(passphrase or settings.wallet_encryption_key, settings.wallet_encryption_salt)
    iv = os.urandom(IV_LENGTH)
    ciphertext = AESGCM(key).encrypt(iv, bytes(secret), None)
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt_secret(blob: str, passphrase: Optional[str] = None) -> bytes:
    """
    Decrypt a blob produced by :func:`encrypt_secret`.

    Raises:
        DecryptionError: malformed blob, tampered ciphertext, or a passphrase
            that differs from the one used to encrypt.
    """
    try:
        iv_hex, ct_hex = blob.split(":")
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ct_hex)
    except (AttributeError, ValueError) as e:
        logger.critical(f"🔐 Malformed encrypted key blob: {e}")
        raise DecryptionError("Encrypted key has an invalid format") from e

    if len(iv) != IV_LENGTH:
        logger.critical("🔐 Encrypted key blob has a bad IV length")
        raise DecryptionError("Encrypted key has an invalid format")

    key = _derive_key(passphrase or settings.wallet_encryption_key, settings.wallet_encryption_salt)
    try:
        return AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag as e:
        logger.critical("🔐 Custodial key failed authentication (tampered or passphrase changed)")
        raise DecryptionError("Failed to decrypt custodial key") from e
