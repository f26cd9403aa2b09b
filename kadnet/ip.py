"""IPv4 addresses of the peers taking part in the network."""

from __future__ import annotations

import socket
from typing import Union

_LOCALHOST = socket.inet_aton("127.0.0.1")

IpLike = Union[str, bytes, bytearray, int, "Ip", None]


def _parse(text: str) -> bytes:
    """Parse dotted-quad text, falling back to 127.0.0.1 when it is not one."""
    if text == "localhost":
        return _LOCALHOST
    try:
        return socket.inet_pton(socket.AF_INET, text)
    except (OSError, ValueError):
        return _LOCALHOST


class Ip:
    """An IPv4 address.

    It is built from dotted-quad text, from its four packed bytes, or from
    the integer that a little-endian host holds for the address in network
    byte order. Text that cannot be parsed, "localhost" and no value at all
    give 127.0.0.1.
    """

    __slots__ = ("_packed",)

    def __init__(self, value: IpLike = None) -> None:
        if value is None:
            packed = _LOCALHOST
        elif isinstance(value, Ip):
            packed = value._packed
        elif isinstance(value, str):
            packed = _parse(value)
        elif isinstance(value, (bytes, bytearray)):
            if len(value) != 4:
                raise ValueError(f"an IPv4 address has 4 bytes, not {len(value)}")
            packed = bytes(value)
        elif isinstance(value, int) and not isinstance(value, bool):
            if not 0 <= value <= 0xFFFFFFFF:
                raise ValueError(f"{value} does not fit in 32 bits")
            packed = value.to_bytes(4, "little")
        else:
            raise TypeError(f"cannot build an Ip from {type(value).__name__}")
        self._packed = packed

    def packed(self) -> bytes:
        """The four address bytes, most significant octet first."""
        return self._packed

    def network_order(self) -> int:
        """The address as the integer a little-endian host stores in network order."""
        return int.from_bytes(self._packed, "little")

    def host_order(self) -> int:
        """The address as an ordinary integer, first octet in the high byte."""
        return int.from_bytes(self._packed, "big")

    def is_localhost(self) -> bool:
        """True if the address is 127.0.0.1."""
        return self._packed == _LOCALHOST

    def is_private(self) -> bool:
        """True for loopback, private-network and link-local addresses."""
        first, second = self._packed[0], self._packed[1]
        if first in (10, 127):
            return True
        return (
            (first == 172 and 15 < second < 32)
            or (first == 192 and second == 168)
            or (first == 169 and second == 254)
        )

    def __str__(self) -> str:
        return socket.inet_ntop(socket.AF_INET, self._packed)

    def __repr__(self) -> str:
        return f"Ip('{self}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ip):
            return NotImplemented
        return self._packed == other._packed

    def __hash__(self) -> int:
        return hash(self._packed)