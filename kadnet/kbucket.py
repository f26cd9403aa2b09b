"""A bounded, most-recently-seen-first collection of nodes."""

from __future__ import annotations

import logging
import struct
import threading
from typing import Callable, Iterable, Iterator, List, Optional

from kadnet.ip import Ip
from kadnet.key import KBUCKET_SIZE
from kadnet.node import Node

_log = logging.getLogger(__name__)

_COUNT = struct.Struct("!H")
_ENTRY = struct.Struct("!4sH")

OnFull = Callable[[Node, Node, "Kbucket"], None]


class Kbucket:
    """Up to KBUCKET_SIZE nodes, the one heard from most recently first.

    When a new node arrives and the bucket is full, ``on_full`` is called
    with the least recently seen node, the new node and the bucket, so that
    the old node can be checked and replaced if it no longer answers.
    """

    def __init__(
        self,
        nodes: Optional[Iterable[Node]] = None,
        on_full: Optional[OnFull] = None,
    ) -> None:
        self._nodes: List[Node] = list(nodes) if nodes is not None else []
        self._on_full = on_full
        self._lock = threading.RLock()

    def add_node(self, node: Node) -> None:
        """Move a known node to the front, or add a new one if there is room."""
        if self.replace_node(node, node):
            return
        with self._lock:
            if len(self._nodes) < KBUCKET_SIZE:
                self._nodes.insert(0, node)
                _log.debug("Added %s", node)
                return
            least_recent = self._nodes[-1]
        if self._on_full is not None:
            self._on_full(least_recent, node, self)

    def delete_node(self, node: Node) -> None:
        """Remove a node; nothing happens if it is not in the bucket."""
        with self._lock:
            if node not in self._nodes:
                return
            self._nodes = [n for n in self._nodes if n != node]
        _log.debug("Removed %s", node)

    def replace_node(self, old_node: Node, new_node: Node) -> bool:
        """Replace ``old_node`` by ``new_node`` at the front of the bucket.

        Returns False, changing nothing, if ``old_node`` is not present.
        """
        with self._lock:
            if old_node not in self._nodes:
                return False
            self._nodes = [new_node] + [n for n in self._nodes if n != old_node]
        _log.debug("Replaced %s with %s", old_node, new_node)
        return True

    def nodes(self) -> List[Node]:
        """A copy of the nodes, most recently seen first."""
        with self._lock:
            return list(self._nodes)

    def set_nodes(self, nodes: Iterable[Node]) -> None:
        """Replace the content of the bucket with a copy of ``nodes``."""
        new_nodes = list(nodes)
        with self._lock:
            self._nodes = new_nodes

    def serialize(self) -> bytes:
        """Encode as a 2-byte node count, then 4 address bytes and a 2-byte port per node."""
        with self._lock:
            nodes = list(self._nodes)
        parts = [_COUNT.pack(len(nodes))]
        parts.extend(_ENTRY.pack(n.ip.packed(), n.port) for n in nodes)
        return b"".join(parts)

    @classmethod
    def deserialize(cls, data: bytes) -> "Kbucket":
        """Decode a bucket written by :meth:`serialize`; trailing bytes are ignored."""
        data = bytes(data)
        if len(data) < _COUNT.size:
            raise ValueError("truncated k-bucket: missing node count")
        (count,) = _COUNT.unpack_from(data)
        end = _COUNT.size + count * _ENTRY.size
        if len(data) < end:
            raise ValueError(f"truncated k-bucket: {count} nodes need {end} bytes")
        nodes = [
            Node(Ip(address), port)
            for address, port in _ENTRY.iter_unpack(data[_COUNT.size:end])
        ]
        return cls(nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        with self._lock:
            return node in self._nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes())

    def __str__(self) -> str:
        return "".join(f"<{n.ip},{n.port}>" for n in self.nodes())

    def __repr__(self) -> str:
        return f"Kbucket({self.nodes()!r})"

    def describe(self) -> str:
        """The size of the bucket and its nodes, one per line."""
        nodes = self.nodes()
        lines = [f"KBucket size: {len(nodes)}"]
        lines.extend(f"<{n.ip},{n.port}>" for n in nodes)
        return "\n".join(lines)