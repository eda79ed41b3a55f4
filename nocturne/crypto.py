"""Password key derivation and authenticated encryption.

Argon2id (argon2-cffi) turns the master password and a per-store salt into
a 256-bit key; AES-256-GCM (cryptography) seals the serialized notes.
The KDF cost parameters are constants so that every build derives the same
key from the same password and salt.
"""

from __future__ import annotations

import logging
import os
from typing import Union

from argon2.exceptions import HashingError
from argon2.low_level import ARGON2_VERSION, Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from nocturne.container import NONCE_LEN, SALT_LEN, TAG_LEN, Container, Header
from nocturne.errors import AuthenticationError, KeyDerivationError
from nocturne.sensitive import SecretBytes

logger = logging.getLogger(__name__)

KEY_LEN = 32  # AES-256

# Argon2id, v0x13, m=19 MiB, t=2, p=1
ARGON2_TIME_COST = 2
ARGON2_MEMORY_COST = 19456  # KiB
ARGON2_PARALLELISM = 1

KeyLike = Union[SecretBytes, bytes, bytearray]


def _key_bytes(key: KeyLike) -> bytes:
    raw = key.reveal() if isinstance(key, SecretBytes) else bytes(key)
    if len(raw) != KEY_LEN:
        raise ValueError(f"key must be {KEY_LEN} bytes, got {len(raw)}")
    return raw


def generate_salt() -> bytes:
    """Return 16 cryptographically random bytes for a new store."""
    return os.urandom(SALT_LEN)


def derive_key(password: Union[bytes, bytearray, SecretBytes], salt: bytes) -> SecretBytes:
    """Derive the 32-byte store key from ``password`` and ``salt``.

    Raises:
        KeyDerivationError: if the salt has the wrong length or Argon2
            rejects the inputs.
    """
    if len(salt) != SALT_LEN:
        raise KeyDerivationError(f"salt must be {SALT_LEN} bytes, got {len(salt)}")

    secret = password.reveal() if isinstance(password, SecretBytes) else bytes(password)
    try:
        raw = hash_secret_raw(
            secret=secret,
            salt=bytes(salt),
            time_cost=ARGON2_TIME_COST,
            memory_cost=ARGON2_MEMORY_COST,
            parallelism=ARGON2_PARALLELISM,
            hash_len=KEY_LEN,
            type=Type.ID,
            version=ARGON2_VERSION,
        )
    except HashingError as exc:
        raise KeyDerivationError(f"Key derivation failed: {exc}") from exc

    logger.debug("Derived %d-byte key", len(raw))
    return SecretBytes(raw)


def encrypt(key: KeyLike, salt: bytes, plaintext: bytes) -> Container:
    """Seal ``plaintext`` under ``key`` with a freshly generated nonce.

    The returned container carries ``salt`` unchanged so the store can be
    re-derived on the next unlock.
    """
    nonce = os.urandom(NONCE_LEN)
    sealed = AESGCM(_key_bytes(key)).encrypt(nonce, bytes(plaintext), None)
    ciphertext, tag = sealed[:-TAG_LEN], sealed[-TAG_LEN:]
    return Container(header=Header(salt=bytes(salt), nonce=nonce, tag=tag), ciphertext=ciphertext)


def decrypt(key: KeyLike, container: Container) -> bytes:
    """Verify and open ``container``.

    Raises:
        AuthenticationError: on any tag mismatch. Wrong keys and corrupted
            data produce the same error.
    """
    aesgcm = AESGCM(_key_bytes(key))
    try:
        return aesgcm.decrypt(
            container.header.nonce,
            container.ciphertext + container.header.tag,
            None,
        )
    except InvalidTag:
        raise AuthenticationError() from None
