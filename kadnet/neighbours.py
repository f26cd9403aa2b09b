"""The routing table: one k-bucket for every possible distance."""

from __future__ import annotations

from typing import List, Optional

from kadnet.distance import Distance
from kadnet.kbucket import Kbucket, OnFull
from kadnet.key import KBUCKET_SIZE, KEY_BITS, Key
from kadnet.node import Node


class NeighbourManager:
    """Keeps the known nodes in KEY_BITS k-buckets, by distance from ``myself``.

    Bucket ``i`` holds the nodes at distance ``i + 1``. ``on_full`` is given
    to every bucket and called when a node arrives at a full one.
    """

    def __init__(self, myself: Node, on_full: Optional[OnFull] = None) -> None:
        self.myself = myself
        self._buckets = [Kbucket(on_full=on_full) for _ in range(KEY_BITS)]

    def bucket(self, index: int) -> Kbucket:
        """The k-bucket holding the nodes at distance ``index + 1``."""
        if not 0 <= index < KEY_BITS:
            raise IndexError(f"bucket index {index} out of range")
        return self._buckets[index]

    def _fill(self, result: List[Node], index: int) -> None:
        for node in self._buckets[index].nodes():
            result.append(node)
            if len(result) == KBUCKET_SIZE:
                break

    def _collect(self, key: Key, just_one: bool) -> Kbucket:
        index = max(Distance(self.myself.key, key).value - 1, 0)
        result = self._buckets[index].nodes()
        if len(result) == KBUCKET_SIZE or (just_one and result):
            return Kbucket(result)
        for other in range(index + 1, KEY_BITS):
            if len(result) >= KBUCKET_SIZE:
                break
            self._fill(result, other)
        for other in range(index - 1, -1, -1):
            if len(result) >= KBUCKET_SIZE:
                break
            self._fill(result, other)
        result.sort(key=lambda node: Distance(node.key, key))
        return Kbucket(result)

    def find_k_closest(self, key: Key) -> Kbucket:
        """Up to KBUCKET_SIZE known nodes close to ``key``.

        The bucket at the distance of ``key`` is returned as it is when full;
        otherwise it is topped up from farther buckets, then nearer ones, and
        the result is sorted by distance from ``key``.
        """
        return self._collect(key, just_one=False)

    def find_closest(self, key: Key) -> Node:
        """The single known node closest to ``key``, or 127.0.0.1:0 if none is known."""
        nodes = self._collect(key, just_one=True).nodes()
        return nodes[0] if nodes else Node()

    def insert(self, node: Node) -> None:
        """Put a node in the bucket for its distance; this peer itself is skipped."""
        index = Distance(self.myself, node).value - 1
        if index < 0:
            return
        self._buckets[index].add_node(node)

    def describe(self) -> str:
        """Every non-empty bucket with its nodes, one per line."""
        lines = []
        for index, bucket in enumerate(self._buckets):
            nodes = bucket.nodes()
            if nodes:
                lines.append(f"KBUCKET NUMBER {index}")
                lines.extend(f"\tNode {node}" for node in nodes)
        return "\n".join(lines)