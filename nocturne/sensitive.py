"""Clear-on-release container for key material and passwords."""

from __future__ import annotations

from typing import Union


class SecretBytes:
    """Mutable byte buffer that is overwritten with zeros when released.

    Use as a context manager so the buffer is wiped on every exit path.
    ``reveal()`` hands an immutable copy to a primitive that needs ``bytes``;
    that copy belongs to the caller and cannot be wiped from Python.
    """

    __slots__ = ("_buf",)

    def __init__(self, data: Union[bytes, bytearray, str]) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buf = bytearray(data)

    def reveal(self) -> bytes:
        return bytes(self._buf)

    def wipe(self) -> None:
        for i in range(len(self._buf)):
            self._buf[i] = 0

    @property
    def wiped(self) -> bool:
        return not any(self._buf)

    def __len__(self) -> int:
        return len(self._buf)

    def __enter__(self) -> "SecretBytes":
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    def __del__(self) -> None:
        if hasattr(self, "_buf"):
            self.wipe()

    def __repr__(self) -> str:
        return f"SecretBytes(<{len(self._buf)} bytes>)"

    __str__ = __repr__

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretBytes):
            return self._buf == other._buf
        if isinstance(other, (bytes, bytearray)):
            return self._buf == other
        return NotImplemented

    __hash__ = None
