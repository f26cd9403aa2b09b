"""The XOR-based distance between two keys."""

from __future__ import annotations

from functools import total_ordering
from typing import Union

from kadnet.key import KEY_BITS, Key
from kadnet.node import Node

KeyLike = Union[Key, Node]


def first_set_bit(byte: int) -> int:
    """Position of the highest set bit of a byte, 1 for 0x80 through 8 for 0x01.

    A zero byte has no set bit and gives 8, the same as 0x01.
    """
    if not 0 <= byte <= 0xFF:
        raise ValueError(f"{byte} is not a byte")
    if byte == 0:
        return 8
    return 9 - byte.bit_length()


def _key_of(item: KeyLike) -> bytes:
    if isinstance(item, Node):
        return bytes(item.key)
    if isinstance(item, Key):
        return bytes(item)
    raise TypeError(f"cannot measure the distance of {type(item).__name__}")


@total_ordering
class Distance:
    """How far apart two keys, or the keys of two nodes, are.

    The distance is the number of key bits minus the position of the first
    bit, counted from the most significant one, where the keys differ. Keys
    that differ in their first bit are the farthest apart; equal keys are at
    distance 0.
    """

    __slots__ = ("_value",)

    def __init__(self, first: KeyLike, second: KeyLike) -> None:
        a, b = _key_of(first), _key_of(second)
        self._value = 0
        for index, (x, y) in enumerate(zip(a, b)):
            diff = x ^ y
            if diff:
                self._value = KEY_BITS - (8 * index + first_set_bit(diff))
                break

    @property
    def value(self) -> int:
        """The distance as a number from 0 to the number of key bits."""
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Distance):
            return NotImplemented
        return self._value == other._value

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Distance):
            return NotImplemented
        return self._value < other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"Distance({self._value})"