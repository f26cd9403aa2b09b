import random

import pytest

from kadnet.node_id import BIT_SIZE, BLOCKS_COUNT, NodeId, distance


def test_default_is_zero():
    zero = NodeId()
    assert list(zero) == [0] * BLOCKS_COUNT
    assert str(zero) == ""


def test_from_hex_pads_with_leading_zeros():
    ident = NodeId.from_hex("1")
    assert list(ident) == [0] * (BLOCKS_COUNT - 1) + [1]


def test_from_hex_full_length():
    text = "f93298f3e3a0a9279ad336504e3da760b1f4797c"
    assert bytes(NodeId.from_hex(text)) == bytes.fromhex(text)


def test_from_hex_too_long():
    with pytest.raises(ValueError):
        NodeId.from_hex("0" * 41)


def test_from_hex_not_hex():
    with pytest.raises(ValueError):
        NodeId.from_hex("xyz")


def test_wrong_block_count():
    with pytest.raises(ValueError):
        NodeId(b"\x01\x02")


def test_from_value_is_sha1():
    assert bytes(NodeId.from_value(b"abc")) == bytes.fromhex(
        "a9993e364706816aba3e25717850c26c9cd0d89d"
    )
    assert NodeId.from_value("abc") == NodeId.from_value(b"abc")


def test_bit_access_msb_first():
    ident = NodeId.from_hex("8" + "0" * 39)
    assert ident[0] is True
    assert ident[1] is False
    assert ident[BIT_SIZE - 1] is False


def test_bit_set_and_clear():
    ident = NodeId()
    ident[BIT_SIZE - 1] = True
    assert ident == NodeId.from_hex("1")
    ident[BIT_SIZE - 1] = False
    assert ident == NodeId()


def test_bit_index_out_of_range():
    with pytest.raises(IndexError):
        NodeId()[BIT_SIZE]


def test_distance_properties():
    a = NodeId.from_value("a")
    b = NodeId.from_value("b")
    assert distance(a, a) == NodeId()
    assert distance(a, b) == distance(b, a)
    assert distance(a, NodeId()) == a
    assert distance(distance(a, b), b) == a


def test_ordering_is_lexicographic():
    small = NodeId.from_hex("1")
    large = NodeId.from_hex("1" + "0" * 39)
    assert small < large
    assert large > small
    assert sorted([large, small]) == [small, large]


def test_random_is_reproducible():
    first = NodeId.random(random.Random(7))
    second = NodeId.random(random.Random(7))
    assert first == second
    assert hash(first) == hash(second)
    assert len(list(first)) == BLOCKS_COUNT


def test_str_skips_leading_zero_bytes():
    ident = NodeId(bytes([0] * 17 + [0x01, 0x0A, 0x05]))
    assert str(ident) == "01a5"
    assert str(NodeId.from_hex("ab")) == "ab"