"""At-rest wrapping of clip encryption keys.

Clip content marked is_encrypted is an opaque blob produced by the client;
the server never sees plaintext. The key material the owner hands over with
such a clip is wrapped with XChaCha20-Poly1305 (PyNaCl SecretBox) under a
server master key before it is written to clip_contents.encryption_key, and
unwrapped only when the owner reads the clip.

Stored format (fits the 255-char column for keys up to MAX_CLIP_KEY_LENGTH):
    v<version>:<base64 nonce>:<base64 ciphertext>

Security invariants:
- Never log key material or ciphertext
- Master key is validated on first use (32 bytes)
- A fresh random nonce is used for every wrap
- Unwrapping fails if the nonce, ciphertext or master key is wrong
"""

import base64
import hashlib
import os
from functools import lru_cache

from nacl.exceptions import CryptoError as NaclCryptoError
from nacl.secret import SecretBox

from clipshare.config import Environment, get_settings
from clipshare.logging import get_logger

logger = get_logger(__name__)

# XChaCha20-Poly1305 nonce size (24 bytes)
NONCE_SIZE = SecretBox.NONCE_SIZE

# Master key size (32 bytes)
MASTER_KEY_SIZE = SecretBox.KEY_SIZE

# Current master key version (no rotation implemented yet)
CURRENT_MASTER_KEY_VERSION = 1

# Longest owner key material, in UTF-8 bytes, that still fits the stored column
MAX_CLIP_KEY_LENGTH = 128

# Seed for the deterministic local/test master key
_DEV_KEY_SEED = b"clipshare-local-master-key"


class CryptoError(Exception):
    """Raised when cryptographic operations fail."""

    pass


@lru_cache(maxsize=1)
def _get_master_key() -> bytes:
    """Load and validate the master key from settings.

    In local/test environments without CLIPSHARE_KEY_ENCRYPTION_KEY a
    deterministic development key is used. Staging/prod settings validation
    already requires the variable.

    Raises:
        CryptoError: If the key is invalid base64 or the wrong size.
    """
    settings = get_settings()
    key_b64 = settings.clipshare_key_encryption_key
    if not key_b64:
        if settings.clipshare_env in (Environment.STAGING, Environment.PROD):
            raise CryptoError("CLIPSHARE_KEY_ENCRYPTION_KEY is not set")
        logger.warning("master_key_dev_fallback", env=settings.clipshare_env.value)
        return hashlib.sha256(_DEV_KEY_SEED).digest()

    try:
        key = base64.b64decode(key_b64, validate=True)
    except ValueError as e:
        raise CryptoError(f"CLIPSHARE_KEY_ENCRYPTION_KEY is not valid base64: {e}") from e

    if len(key) != MASTER_KEY_SIZE:
        raise CryptoError(
            f"CLIPSHARE_KEY_ENCRYPTION_KEY must be {MASTER_KEY_SIZE} bytes, got {len(key)} bytes"
        )

    return key


def clear_master_key_cache() -> None:
    """Clear the cached master key (tests, key rotation)."""
    _get_master_key.cache_clear()


def generate_nonce() -> bytes:
    """Generate a random 24-byte nonce. Never reuse one under the same key."""
    return os.urandom(NONCE_SIZE)


def wrap_clip_key(key_material: str) -> str:
    """Wrap owner key material for storage.

    Args:
        key_material: The key string supplied with an encrypted clip.

    Returns:
        The versioned stored form.

    Raises:
        CryptoError: If encryption fails or the master key is misconfigured.
    """
    nonce = generate_nonce()
    try:
        box = SecretBox(_get_master_key())
        ciphertext = box.encrypt(key_material.encode("utf-8"), nonce=nonce).ciphertext
    except CryptoError:
        raise
    except NaclCryptoError as e:
        logger.error("clip_key_wrap_failed", error_type=type(e).__name__)
        raise CryptoError("Key wrapping failed") from e

    return ":".join(
        (
            f"v{CURRENT_MASTER_KEY_VERSION}",
            base64.b64encode(nonce).decode("ascii"),
            base64.b64encode(ciphertext).decode("ascii"),
        )
    )


def unwrap_clip_key(stored: str) -> str:
    """Recover owner key material from its stored form.

    Raises:
        CryptoError: On unknown version, malformed value or failed authentication.
    """
    try:
        version_part, nonce_b64, ciphertext_b64 = stored.split(":")
        version = int(version_part.removeprefix("v"))
        nonce = base64.b64decode(nonce_b64, validate=True)
        ciphertext = base64.b64decode(ciphertext_b64, validate=True)
    except ValueError as e:
        raise CryptoError("Malformed stored key") from e

    if version != CURRENT_MASTER_KEY_VERSION:
        raise CryptoError(f"Unknown key version: {version}")
    if len(nonce) != NONCE_SIZE:
        raise CryptoError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    try:
        box = SecretBox(_get_master_key())
        return box.decrypt(ciphertext, nonce=nonce).decode("utf-8")
    except CryptoError:
        raise
    except NaclCryptoError as e:
        logger.error("clip_key_unwrap_failed", error_type=type(e).__name__)
        raise CryptoError("Key unwrapping failed") from e
