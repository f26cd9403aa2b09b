import pytest

from kadnet.ip import Ip
from kadnet.kbucket import Kbucket
from kadnet.key import KBUCKET_SIZE
from kadnet.node import Node


def _nodes(count):
    return [Node(f"10.0.0.{i + 1}", 5000 + i) for i in range(count)]


def test_new_node_goes_to_front():
    bucket = Kbucket()
    a, b = _nodes(2)
    bucket.add_node(a)
    bucket.add_node(b)
    assert bucket.nodes() == [b, a]
    assert len(bucket) == 2


def test_known_node_moves_to_front_without_duplicating():
    bucket = Kbucket()
    a, b, c = _nodes(3)
    for n in (a, b, c):
        bucket.add_node(n)
    bucket.add_node(a)
    assert bucket.nodes() == [a, c, b]


def test_full_bucket_calls_on_full_with_least_recent():
    calls = []
    bucket = Kbucket(on_full=lambda old, new, kb: calls.append((old, new, kb)))
    nodes = _nodes(KBUCKET_SIZE + 1)
    for n in nodes[:KBUCKET_SIZE]:
        bucket.add_node(n)
    bucket.add_node(nodes[-1])
    assert len(bucket) == KBUCKET_SIZE
    assert nodes[-1] not in bucket
    assert calls == [(nodes[0], nodes[-1], bucket)]


def test_full_bucket_without_callback_keeps_content():
    bucket = Kbucket()
    nodes = _nodes(KBUCKET_SIZE + 1)
    for n in nodes:
        bucket.add_node(n)
    assert bucket.nodes() == list(reversed(nodes[:KBUCKET_SIZE]))


def test_delete_node():
    a, b = _nodes(2)
    bucket = Kbucket([a, b])
    bucket.delete_node(a)
    assert bucket.nodes() == [b]
    bucket.delete_node(a)
    assert bucket.nodes() == [b]


def test_replace_node():
    a, b, c = _nodes(3)
    bucket = Kbucket([a, b])
    assert bucket.replace_node(b, c) is True
    assert bucket.nodes() == [c, a]
    assert bucket.replace_node(b, a) is False
    assert bucket.nodes() == [c, a]


def test_contains_and_iter():
    a, b = _nodes(2)
    bucket = Kbucket([a])
    assert a in bucket
    assert b not in bucket
    assert "10.0.0.1" not in bucket
    assert list(bucket) == [a]


def test_set_nodes_copies():
    a, b = _nodes(2)
    source = [a, b]
    bucket = Kbucket()
    bucket.set_nodes(source)
    source.clear()
    assert bucket.nodes() == [a, b]


def test_nodes_returns_copy():
    a, b = _nodes(2)
    bucket = Kbucket([a])
    bucket.nodes().append(b)
    assert bucket.nodes() == [a]


def test_serialize_wire_format():
    bucket = Kbucket([Node("1.2.3.4", 0x1F90)])
    assert bucket.serialize() == b"\x00\x01" + bytes([1, 2, 3, 4]) + b"\x1f\x90"


def test_serialize_empty():
    assert Kbucket().serialize() == b"\x00\x00"


def test_round_trip():
    nodes = _nodes(KBUCKET_SIZE)
    restored = Kbucket.deserialize(Kbucket(nodes).serialize())
    assert restored.nodes() == nodes


def test_deserialize_ignores_trailing_bytes():
    nodes = _nodes(2)
    data = Kbucket(nodes).serialize() + b"\x00" * 30
    assert Kbucket.deserialize(data).nodes() == nodes


@pytest.mark.parametrize("data", [b"", b"\x00", b"\x00\x01\x01\x02\x03\x04\x00"])
def test_deserialize_truncated(data):
    with pytest.raises(ValueError):
        Kbucket.deserialize(data)


def test_str_and_describe():
    bucket = Kbucket([Node(Ip("127.0.0.1"), 80), Node(Ip("10.0.0.1"), 81)])
    assert str(bucket) == "<127.0.0.1,80><10.0.0.1,81>"
    assert bucket.describe() == "KBucket size: 2\n<127.0.0.1,80>\n<10.0.0.1,81>"