"""State of one iterative node lookup: who to ask next and who has answered."""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from kadnet.distance import Distance
from kadnet.kbucket import Kbucket
from kadnet.key import ALPHA_REQUESTS, KBUCKET_SIZE, TIMEOUT, Key
from kadnet.logger import LOGGER_SEARCHNODE
from kadnet.node import Node

_log = logging.getLogger(__name__)


class ProbeStatus(enum.IntEnum):
    """How far a node has got in a lookup; higher values rank first at equal distance."""

    UNKNOWN = 0
    PENDING = 1
    ACTIVE = 2


@dataclass
class ProbedNode:
    """A node taking part in a lookup, with its status and distance to the target."""

    node: Node
    distance: int
    probed: ProbeStatus = ProbeStatus.UNKNOWN
    query_time: float = 0.0


def _order(entry: ProbedNode) -> tuple:
    return (entry.distance, -int(entry.probed))


def _unique(entries: List[ProbedNode]) -> List[ProbedNode]:
    """Drop repeated nodes, the kept entry taking the highest status seen."""
    seen: Dict[Node, ProbedNode] = {}
    kept: List[ProbedNode] = []
    for entry in entries:
        first = seen.get(entry.node)
        if first is None:
            seen[entry.node] = entry
            kept.append(entry)
        else:
            first.probed = max(first.probed, entry.probed)
    return kept


class SearchNode:
    """Keeps the closest nodes found so far while a key is looked up.

    ``candidates`` holds at most KBUCKET_SIZE nodes sorted by distance to
    the key; ``reserve`` holds farther nodes that were already queried.
    """

    def __init__(self, key: Union[Key, Node], bucket: Iterable[Node]) -> None:
        self.key = key.key if isinstance(key, Node) else key
        self.timeout = TIMEOUT
        self.candidates: List[ProbedNode] = sorted(
            (self._probe(node) for node in bucket), key=_order
        )
        self.reserve: List[ProbedNode] = []
        self._lock = threading.Lock()

    def _probe(self, node: Node) -> ProbedNode:
        return ProbedNode(node, Distance(self.key, node.key).value)

    def add_answer(self, who: Node, bucket: Iterable[Node]) -> bool:
        """Mark ``who`` as active and merge the nodes it answered with.

        Returns False, ignoring the answer, if ``who`` is not part of the lookup.
        """
        with self._lock:
            self.candidates.extend(self.reserve)
            self.reserve = []
            found = False
            for entry in self.candidates:
                if entry.node == who:
                    entry.probed = ProbeStatus.ACTIVE
                    found = True
            if not found:
                return False
            self.candidates.extend(self._probe(node) for node in bucket)
            self.candidates.sort(key=_order)
            self.candidates = _unique(self.candidates)
            overflow = self.candidates[KBUCKET_SIZE:]
            self.candidates = self.candidates[:KBUCKET_SIZE]
            self.reserve = [e for e in overflow if e.probed is not ProbeStatus.UNKNOWN]
            return True

    def query_to(self) -> Optional[List[Node]]:
        """The next nodes to query, at most ALPHA_REQUESTS, now marked pending.

        Returns an empty list when every candidate has answered, so the
        lookup is complete, and None when only answers still pending remain.
        """
        with self._lock:
            unknown = [
                e for e in self.candidates if e.probed is ProbeStatus.UNKNOWN
            ][:ALPHA_REQUESTS]
            if not unknown:
                if all(e.probed is ProbeStatus.ACTIVE for e in self.candidates):
                    return []
                return None
            now = time.monotonic()
            for entry in unknown:
                entry.probed = ProbeStatus.PENDING
                entry.query_time = now
            return [entry.node for entry in unknown]

    def clean(self, now: Optional[float] = None) -> bool:
        """Drop pending nodes queried more than ``timeout`` whole seconds before ``now``.

        ``now`` is a reading of :func:`time.monotonic`. Returns True when
        nodes were dropped and none is left pending, so no answer will ever
        arrive and the caller must trigger the next step itself.
        """
        with self._lock:
            if now is None:
                now = time.monotonic()
            kept: List[ProbedNode] = []
            erased = False
            for entry in self.candidates:
                if (
                    entry.probed is ProbeStatus.PENDING
                    and int(now - entry.query_time) > self.timeout
                ):
                    _log.debug("%s Erased node %s", LOGGER_SEARCHNODE, entry.node)
                    erased = True
                else:
                    kept.append(entry)
            self.candidates = kept
            done = erased and not any(
                e.probed is ProbeStatus.PENDING for e in kept
            )
            if done:
                _log.debug(
                    "%s Every pending node timed out", LOGGER_SEARCHNODE
                )
            return done

    def answer(self) -> Kbucket:
        """A k-bucket of the candidates that answered."""
        result = Kbucket()
        for entry in self.candidates:
            if entry.probed is ProbeStatus.ACTIVE:
                result.add_node(entry.node)
        return result

    def _count(self, status: ProbeStatus) -> int:
        return sum(1 for e in self.candidates if e.probed is status)

    def active_count(self) -> int:
        """Candidates that answered."""
        return self._count(ProbeStatus.ACTIVE)

    def pending_count(self) -> int:
        """Candidates queried and not yet answered."""
        return self._count(ProbeStatus.PENDING)

    def unknown_count(self) -> int:
        """Candidates not yet queried."""
        return self._count(ProbeStatus.UNKNOWN)

    def describe(self) -> str:
        """The candidates and the reserve, one node per line."""

        def line(entry: ProbedNode) -> str:
            return (
                f"{entry.node.ip}:{entry.node.port} [{entry.probed.name}]"
                f" Distance: {entry.distance}"
            )

        lines = [f"SearchNode for Key {self.key}"]
        lines.append(f" - Active list - ({len(self.candidates)})")
        lines.extend(line(e) for e in self.candidates)
        lines.append(f" -- Reserve list -- ({len(self.reserve)})")
        lines.extend(line(e) for e in self.reserve)
        return "\n".join(lines)