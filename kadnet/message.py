"""Messages exchanged between peers and the flags that describe them."""

from __future__ import annotations

import enum
from typing import Optional, Union

from kadnet.ip import Ip
from kadnet.node import Node

#: Bytes of payload a message can carry.
MAX_DATA = 500
#: Bytes in front of the payload: sender address, sender port, flags.
HEADER_SIZE = 12
#: Bits of the flags that select the remote procedure.
RPC_MASK = 0x3

Bytes = Union[bytes, bytearray, memoryview]


class Flag(enum.IntFlag):
    """Flags carried by a message: the procedure in the low bits, then modifiers."""

    PING = 0x1
    STORE = 0x2
    FIND_NODE = 0x3
    ANSWER = 0x4
    FIND_VALUE = 0x8
    VALUE_FOUND = 0x10
    STORE_REQUEST = 0x20


_RPC_NAMES = {
    int(Flag.PING): "RPC_PING ",
    int(Flag.STORE): "RPC_STORE ",
    int(Flag.FIND_NODE): "RPC_FIND_NODE ",
}

_MODIFIER_NAMES = (
    (Flag.ANSWER, "ANSWER "),
    (Flag.FIND_VALUE, "FIND_VALUE "),
    (Flag.VALUE_FOUND, "VALUE_FOUND "),
    (Flag.STORE_REQUEST, "STORE_REQUEST"),
)


def describe_flags(flags: int) -> str:
    """Name the procedure and the modifiers set in ``flags``."""
    value = int(flags)
    parts = []
    rpc = _RPC_NAMES.get(value & RPC_MASK)
    if rpc is not None:
        parts.append(rpc)
    parts.extend(name for flag, name in _MODIFIER_NAMES if value & flag)
    return "".join(parts)


def _checked_data(data: Bytes) -> bytes:
    payload = bytes(data)
    if len(payload) > MAX_DATA:
        raise ValueError(f"a message carries at most {MAX_DATA} bytes, not {len(payload)}")
    return payload


def _encode_text(text: str) -> bytes:
    return text.encode("utf-8") + b"\x00"


class Message:
    """A payload of at most MAX_DATA bytes, its flags and the node that sent it.

    Messages built locally have the node 127.0.0.1:0 as sender until they are
    received from the network.
    """

    __slots__ = ("_data", "_flags", "sender")

    def __init__(
        self,
        data: Bytes = b"",
        flags: int = 0,
        sender: Optional[Node] = None,
    ) -> None:
        self._data = _checked_data(data)
        self.flags = flags
        self.sender = sender if sender is not None else Node()

    @classmethod
    def from_text(cls, text: str) -> "Message":
        """A message holding ``text`` followed by a NUL terminator."""
        return cls(_encode_text(text))

    @property
    def data(self) -> bytes:
        """The payload."""
        return self._data

    @property
    def flags(self) -> int:
        """The flags, a single byte."""
        return self._flags

    @flags.setter
    def flags(self, value: int) -> None:
        value = int(value)
        if not 0 <= value <= 0xFF:
            raise ValueError(f"flags {value} do not fit in a byte")
        self._flags = value

    def text(self) -> str:
        """The payload read as text, up to the first NUL."""
        end = self._data.find(b"\x00")
        raw = self._data if end < 0 else self._data[:end]
        return raw.decode("utf-8", errors="replace")

    def set_text(self, text: str) -> None:
        """Replace the payload with ``text`` and a NUL terminator."""
        self._data = _checked_data(_encode_text(text))

    def set_data(self, data: Bytes) -> None:
        """Replace the payload."""
        self._data = _checked_data(data)

    def append(self, data: Bytes) -> None:
        """Add bytes at the end of the payload."""
        self._data = _checked_data(self._data + bytes(data))

    def __len__(self) -> int:
        return len(self._data)

    def to_datagram(self, ip: Ip, port: int) -> bytes:
        """Encode for sending from ``ip`` and ``port`` (host order).

        The header holds the four address bytes, the port in network order,
        the flags, and zero padding up to HEADER_SIZE bytes.
        """
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port {port} does not fit in 16 bits")
        header = ip.packed() + port.to_bytes(2, "big") + bytes([self._flags])
        return header.ljust(HEADER_SIZE, b"\x00") + self._data

    @classmethod
    def from_datagram(cls, packet: Bytes) -> "Message":
        """Decode a datagram written by :meth:`to_datagram`."""
        packet = bytes(packet)
        if len(packet) < HEADER_SIZE:
            raise ValueError(f"a datagram needs at least {HEADER_SIZE} bytes")
        sender = Node(Ip(packet[0:4]), int.from_bytes(packet[4:6], "big"))
        return cls(packet[HEADER_SIZE:], packet[6], sender)

    def __repr__(self) -> str:
        return (
            f"Message(data={self._data!r}, flags={self._flags:#04x}, "
            f"sender={self.sender!r})"
        )