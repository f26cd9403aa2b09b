"""160-bit keys identifying nodes and stored values, and network settings."""

from __future__ import annotations

import hashlib
import string
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from kadnet.ip import Ip

#: Bytes in a key (SHA-1 digest size).
KEY_BYTES = 20
#: Bits in a key, which is also the number of k-buckets.
KEY_BITS = KEY_BYTES * 8
#: Nodes kept in one k-bucket.
KBUCKET_SIZE = 6
#: Received messages queued before further ones are dropped.
QUEUE_LENGTH = 1000
#: Nodes queried at once during a lookup.
ALPHA_REQUESTS = 3
#: Seconds to wait for an answer before a node is considered gone.
TIMEOUT = 1

_HEX_DIGITS = frozenset(string.hexdigits)


class Key:
    """A 20-byte SHA-1 key."""

    __slots__ = ("_digest",)

    def __init__(self, digest: Union[bytes, bytearray]) -> None:
        if len(digest) != KEY_BYTES:
            raise ValueError(f"a key has {KEY_BYTES} bytes, not {len(digest)}")
        self._digest = bytes(digest)

    @classmethod
    def from_string(cls, name: Union[str, bytes]) -> "Key":
        """Hash a string (UTF-8 encoded) or raw bytes into a key."""
        data = name.encode("utf-8") if isinstance(name, str) else bytes(name)
        return cls(hashlib.sha1(data).digest())

    @classmethod
    def from_address(cls, ip: "Ip", port_no: int) -> "Key":
        """Hash an address into a key.

        ``port_no`` is the port as a little-endian host holds it in network
        order, so that every peer derives the same key for the same address.
        """
        if not 0 <= port_no <= 0xFFFF:
            raise ValueError(f"port {port_no} does not fit in 16 bits")
        data = ip.network_order().to_bytes(4, "big") + port_no.to_bytes(2, "big")
        return cls(hashlib.sha1(data).digest())

    @classmethod
    def from_hex(cls, text: str) -> "Key":
        """Read a key written as "0x" followed by 40 hexadecimal digits.

        The first two characters are taken as the prefix and skipped; any
        characters after the 40 digits are ignored.
        """
        digits = text[2 : 2 + KEY_BYTES * 2]
        if len(digits) < KEY_BYTES * 2:
            raise ValueError("a key needs 40 hexadecimal digits after the prefix")
        if not _HEX_DIGITS.issuperset(digits):
            raise ValueError(f"not a hexadecimal key: {text!r}")
        return cls(bytes.fromhex(digits))

    def __bytes__(self) -> bytes:
        return self._digest

    def __str__(self) -> str:
        return "0x" + self._digest.hex()

    def __repr__(self) -> str:
        return f"Key({self})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self._digest == other._digest

    def __hash__(self) -> int:
        return hash(self._digest)