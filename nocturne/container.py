"""Binary layout of the encrypted store file.

    salt (16) | nonce (12) | tag (16) | ciphertext (N)

Decoding only splits the buffer. Authenticity is checked later by
:func:`nocturne.crypto.decrypt`.
"""

from __future__ import annotations

from dataclasses import dataclass

from nocturne.errors import MalformedContainerError

SALT_LEN = 16
NONCE_LEN = 12
TAG_LEN = 16
HEADER_LEN = SALT_LEN + NONCE_LEN + TAG_LEN  # 44


@dataclass(frozen=True)
class Header:
    """Fixed-width container header."""

    salt: bytes
    nonce: bytes
    tag: bytes

    def __post_init__(self) -> None:
        for name, expected in (("salt", SALT_LEN), ("nonce", NONCE_LEN), ("tag", TAG_LEN)):
            value = getattr(self, name)
            if len(value) != expected:
                raise ValueError(f"{name} must be {expected} bytes, got {len(value)}")


@dataclass(frozen=True)
class Container:
    """Header plus ciphertext, as stored on disk."""

    header: Header
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        return encode(self.header, self.ciphertext)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Container":
        return decode(data)


def encode(header: Header, ciphertext: bytes) -> bytes:
    """Concatenate header fields and ciphertext."""
    return b"".join((header.salt, header.nonce, header.tag, ciphertext))


def decode(data: bytes) -> Container:
    """Split ``data`` into a :class:`Container`.

    Raises:
        MalformedContainerError: if ``data`` is shorter than the header.
    """
    if len(data) < HEADER_LEN:
        raise MalformedContainerError(
            f"Encrypted data is too short: {len(data)} bytes, need at least {HEADER_LEN}"
        )

    data = bytes(data)
    salt = data[:SALT_LEN]
    nonce = data[SALT_LEN : SALT_LEN + NONCE_LEN]
    tag = data[SALT_LEN + NONCE_LEN : HEADER_LEN]
    return Container(header=Header(salt=salt, nonce=nonce, tag=tag), ciphertext=data[HEADER_LEN:])
