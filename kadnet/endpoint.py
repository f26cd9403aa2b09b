"""IP address and port pairs, for IPv4 and IPv6."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Union

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class IpEndpoint:
    """An IP address together with a port."""

    address: Address
    port: int

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port {self.port} does not fit in 16 bits")

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


def to_ip_endpoint(ip: str, port: int) -> IpEndpoint:
    """Build an endpoint from address text; invalid text raises ValueError."""
    return IpEndpoint(ipaddress.ip_address(ip), port)