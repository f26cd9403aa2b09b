"""160-bit identifiers with bit access and XOR distance."""

from __future__ import annotations

import hashlib
import random as _random
import string
from functools import total_ordering
from typing import Iterator, Optional, Union

#: Bits in an identifier.
BIT_SIZE = 160
#: Bits in one block of an identifier.
BIT_PER_BLOCK = 8
#: Blocks (bytes) in an identifier.
BLOCKS_COUNT = BIT_SIZE // BIT_PER_BLOCK

_HEX_PER_BLOCK = 2
_HEX_DIGITS = frozenset(string.hexdigits)

Bytes = Union[bytes, bytearray, memoryview]


@total_ordering
class NodeId:
    """A 160-bit identifier stored as bytes, most significant first.

    With no blocks the identifier is all zeros.
    """

    __slots__ = ("_blocks",)

    def __init__(self, blocks: Optional[Bytes] = None) -> None:
        if blocks is None:
            self._blocks = bytearray(BLOCKS_COUNT)
            return
        data = bytearray(blocks)
        if len(data) != BLOCKS_COUNT:
            raise ValueError(f"an id has {BLOCKS_COUNT} bytes, not {len(data)}")
        self._blocks = data

    @classmethod
    def random(cls, rng: Optional[_random.Random] = None) -> "NodeId":
        """A random identifier drawn from ``rng``, or a fresh generator."""
        source = rng if rng is not None else _random.Random()
        return cls(bytes(source.randrange(256) for _ in range(BLOCKS_COUNT)))

    @classmethod
    def from_hex(cls, text: str) -> "NodeId":
        """Read up to 40 hexadecimal digits, padded with leading zeros."""
        limit = BLOCKS_COUNT * _HEX_PER_BLOCK
        if len(text) > limit:
            raise ValueError(f"an id has at most {limit} hexadecimal digits")
        if not _HEX_DIGITS.issuperset(text):
            raise ValueError(f"invalid id: {text!r}")
        return cls(bytes.fromhex(text.rjust(limit, "0")))

    @classmethod
    def from_value(cls, value: Union[str, Bytes]) -> "NodeId":
        """The SHA-1 hash of ``value``; text is UTF-8 encoded."""
        data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        return cls(hashlib.sha1(data).digest())

    def _locate(self, index: int) -> tuple:
        if not 0 <= index < BIT_SIZE:
            raise IndexError(f"bit index {index} out of range")
        return index // BIT_PER_BLOCK, 0x80 >> (index % BIT_PER_BLOCK)

    def __getitem__(self, index: int) -> bool:
        """Bit ``index``, 0 being the most significant."""
        block, mask = self._locate(index)
        return bool(self._blocks[block] & mask)

    def __setitem__(self, index: int, value: bool) -> None:
        block, mask = self._locate(index)
        if value:
            self._blocks[block] |= mask
        else:
            self._blocks[block] &= ~mask & 0xFF

    def __iter__(self) -> Iterator[int]:
        """The blocks, most significant first."""
        return iter(bytes(self._blocks))

    def __bytes__(self) -> bytes:
        return bytes(self._blocks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeId):
            return NotImplemented
        return self._blocks == other._blocks

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, NodeId):
            return NotImplemented
        return bytes(self._blocks) < bytes(other._blocks)

    def __hash__(self) -> int:
        return hash(bytes(self._blocks))

    def __str__(self) -> str:
        """Hexadecimal form without leading zero bytes.

        The first printed byte takes two digits, the following ones only as
        many as they need; an all-zero id prints as an empty string.
        """
        blocks = bytes(self._blocks).lstrip(b"\x00")
        if not blocks:
            return ""
        return f"{blocks[0]:02x}" + "".join(f"{b:x}" for b in blocks[1:])

    def __repr__(self) -> str:
        return f"NodeId({bytes(self._blocks).hex()})"


def distance(a: NodeId, b: NodeId) -> NodeId:
    """The bitwise exclusive or of two identifiers."""
    return NodeId(bytes(x ^ y for x, y in zip(a, b)))