"""Wallet signature challenge helpers (Ed25519 via solders)."""
import base64
import binascii
import secrets

import base58
from solders.pubkey import Pubkey
from solders.signature import Signature

SIGNATURE_LENGTH = 64


def generate_nonce() -> str:
    """32 random bytes, hex encoded."""
    return secrets.token_hex(32)


def create_sign_message(nonce: str, wallet_address: str) -> str:
    """Build the human-readable challenge the wallet is asked to sign."""
    return (
        "Welcome to SentinelOS!\n\n"
        "Sign this message to authenticate.\n\n"
        f"Wallet: {wallet_address}\n"
        f"Nonce: {nonce}\n\n"
        "This request will not trigger a blockchain transaction or cost any gas fees."
    )


def decode_signature(encoded: str) -> bytes:
    """
    Decode a detached signature sent as base64 (preferred) or base58.

    Raises ValueError unless the result is exactly 64 bytes.
    """
    encoded = (encoded or "").strip()
    try:
        raw = base64.b64decode(encoded, validate=True)
        if len(raw) == SIGNATURE_LENGTH:
            return raw
    except (binascii.Error, ValueError):
        pass
    try:
        raw = base58.b58decode(encoded)
    except ValueError as e:
        raise ValueError("Signature is neither base64 nor base58") from e
    if len(raw) != SIGNATURE_LENGTH:
        raise ValueError(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}")
    return raw


def parse_public_key(public_key: str) -> Pubkey:
    """Parse a base58 public key, raising ValueError if it is malformed."""
    try:
        return Pubkey.from_string(public_key)
    except Exception as e:
        raise ValueError(f"Invalid public key: {public_key!r}") from e


def verify_signature(message: str, signature: bytes, public_key: str) -> bool:
    """
    Check a detached Ed25519 signature over the UTF-8 bytes of ``message``.

    Returns False for any invalid or malformed signature. Only a malformed
    public key raises (ValueError).
    """
    pubkey = parse_public_key(public_key)
    try:
        sig = Signature.from_bytes(bytes(signature))
    except (TypeError, ValueError):
        return False
    return sig.verify(pubkey, message.encode("utf-8"))
