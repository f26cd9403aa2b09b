"""Replacement of unresponsive nodes in full k-buckets."""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

from kadnet.kbucket import Kbucket
from kadnet.key import TIMEOUT
from kadnet.logger import LOGGER_UPDATER, Logger
from kadnet.node import Node


class Updater:
    """Pings the least recently seen node of a full bucket and replaces it
    by the waiting node if no pong arrives within ``timeout`` seconds.
    """

    def __init__(
        self,
        ping: Callable[[Node], None],
        timeout: float = TIMEOUT,
        logger: Optional[Logger] = None,
    ) -> None:
        self._ping = ping
        self.timeout = timeout
        self.logger = logger if logger is not None else Logger()
        self._waiting: Dict[Node, Node] = {}
        self._timers: List[threading.Timer] = []
        self._lock = threading.Lock()

    def check_update_bucket(self, old_node: Node, new_node: Node, kbucket: Kbucket) -> None:
        """Ping ``old_node`` and schedule its replacement by ``new_node``.

        If a replacement is already waiting for ``old_node`` it is kept.
        """
        self._ping(old_node)
        self.logger.log_both(
            LOGGER_UPDATER, "Sent ping to ", old_node, " to check if it is alive"
        )
        timer = threading.Timer(
            self.timeout, self.expire, args=(old_node, new_node, kbucket)
        )
        timer.daemon = True
        with self._lock:
            self._waiting.setdefault(old_node, new_node)
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()

    def process_pong(self, node: Node) -> None:
        """Record that ``node`` answered, so it is not replaced."""
        self.logger.log_both(LOGGER_UPDATER, "Received pong from ", node)
        with self._lock:
            self._waiting.pop(node, None)

    def expire(self, old_node: Node, new_node: Node, kbucket: Kbucket) -> bool:
        """Replace ``old_node`` by ``new_node`` if it is still waiting for that node.

        Returns True if the replacement was made.
        """
        with self._lock:
            if self._waiting.get(old_node) != new_node:
                return False
            del self._waiting[old_node]
        self.logger.log_stdout(
            "End timeout ", old_node, " removed and ", new_node, " inserted"
        )
        kbucket.replace_node(old_node, new_node)
        return True

    def pending(self) -> Dict[Node, Node]:
        """The nodes awaiting a pong, each with the node that would replace it."""
        with self._lock:
            return dict(self._waiting)

    def close(self) -> None:
        """Cancel every scheduled replacement."""
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()