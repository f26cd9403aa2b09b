"""Peers of the network: an address together with its key."""

from __future__ import annotations

from functools import total_ordering
from typing import Optional, Union

from kadnet.ip import Ip
from kadnet.key import Key


def _network_port(port: int) -> int:
    """The port as a little-endian host holds it in network byte order."""
    return int.from_bytes(port.to_bytes(2, "big"), "little")


@total_ordering
class Node:
    """A peer: IP address, port in host order, and the key derived from them.

    With no arguments the node is 127.0.0.1 with port 0.
    """

    __slots__ = ("ip", "port", "_key")

    def __init__(self, ip: Optional[Union[Ip, str]] = None, port: int = 0) -> None:
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port {port} does not fit in 16 bits")
        self.ip = ip if isinstance(ip, Ip) else Ip(ip)
        self.port = port
        self._key = Key.from_address(self.ip, _network_port(port))

    @property
    def key(self) -> Key:
        """The key of this node."""
        return self._key

    def is_empty(self) -> bool:
        """True if the port is 0 or the address is 0.0.0.0."""
        return self.port == 0 or self.ip.host_order() == 0

    def _rank(self) -> int:
        return (self.ip.network_order() << 32) | self.port

    def __lt__(self, other: object) -> bool:
        """An arbitrary but fixed order on addresses, unrelated to distance."""
        if not isinstance(other, Node):
            return NotImplemented
        return self._rank() < other._rank()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.ip == other.ip and self.port == other.port

    def __hash__(self) -> int:
        return hash((self.ip, self.port))

    def __str__(self) -> str:
        return f"{self.ip}:{self.port}"

    def __repr__(self) -> str:
        return f"Node('{self.ip}', {self.port})"