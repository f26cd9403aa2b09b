"""Handling of incoming messages and of the remote procedures a peer starts."""

from __future__ import annotations

import queue
import threading
from typing import Dict, List, Optional, Union

from kadnet.kbucket import Kbucket
from kadnet.key import KEY_BYTES, TIMEOUT, Key
from kadnet.logger import LOGGER_INCOMING, LOGGER_PERFORMER, LOGGER_SEARCHNODE, Logger
from kadnet.message import MAX_DATA, RPC_MASK, Flag, Message
from kadnet.neighbours import NeighbourManager
from kadnet.node import Node
from kadnet.search import SearchNode
from kadnet.updater import Updater

_POLL_SECONDS = 0.2


def generate_find_node_request(key: Union[Key, Node]) -> Message:
    """The message that asks a peer for the nodes closest to ``key``."""
    target = key.key if isinstance(key, Node) else key
    return Message(bytes(target), Flag.FIND_NODE)


def generate_find_node_answer(key: Key, bucket: Kbucket) -> Message:
    """The message answering a find-node request for ``key`` with ``bucket``."""
    return Message(bytes(key) + bucket.serialize(), Flag.FIND_NODE | Flag.ANSWER)


def is_printable(data: bytes) -> bool:
    """True if the bytes read as text: no control character before the first NUL.

    Only the first MAX_DATA bytes are looked at.
    """
    for byte in bytes(data)[:MAX_DATA]:
        if byte == 0:
            return True
        if byte < 32:
            return False
    return True


def _c_string(data: bytes) -> bytes:
    end = data.find(b"\x00")
    return data if end < 0 else data[:end]


class Performer:
    """Answers the messages a peer receives and drives its lookups.

    The messenger must already know its address and port, since the node it
    speaks for decides the distances in the routing table.
    """

    def __init__(
        self,
        messenger,
        logger: Optional[Logger] = None,
        timeout: float = TIMEOUT,
    ) -> None:
        self.messenger = messenger
        self.logger = logger if logger is not None else Logger()
        self.timeout = timeout
        self.updater = Updater(self.ping, timeout, self.logger)
        self.neighbours = NeighbourManager(
            messenger.myself(), on_full=self.updater.check_update_bucket
        )
        self.files: Dict[Key, bytes] = {}
        self.store_tmp: Dict[Key, str] = {}
        self.searches: Dict[Key, SearchNode] = {}
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    # -- incoming messages -------------------------------------------------

    def handle(self, message: Message) -> None:
        """Process one received message."""
        sender = message.sender
        self.neighbours.insert(sender)
        flags = message.flags
        me = self.messenger.myself()
        origin = "Message from" if sender != me else "Message from me"
        self.logger.log_stdout(LOGGER_INCOMING, origin, sender, "with flags:", Flag(flags))
        rpc = flags & RPC_MASK
        is_answer = bool(flags & Flag.ANSWER)
        with self._lock:
            if rpc == Flag.PING:
                self._on_ping(sender, is_answer)
            elif rpc == Flag.STORE:
                self._on_store(message)
            elif rpc == Flag.FIND_NODE:
                if is_answer:
                    self._on_find_answer(message, me)
                else:
                    self._on_find_request(message)

    def _on_ping(self, sender: Node, is_answer: bool) -> None:
        if is_answer:
            self.logger.log_stdout("Received a pong")
            self.updater.process_pong(sender)
        else:
            self.logger.log_stdout("Received a ping")
            self.pong(sender)

    def _on_store(self, message: Message) -> None:
        self.logger.log_stdout("Received a store")
        if len(message.data) < KEY_BYTES:
            return
        key = Key(message.data[:KEY_BYTES])
        if key in self.files:
            self.logger.log_both("ERROR: key already inserted")
            return
        self.files[key] = _c_string(message.data[KEY_BYTES:])

    def _on_find_request(self, message: Message) -> None:
        if len(message.data) < KEY_BYTES:
            return
        key = Key(message.data[:KEY_BYTES])
        flags = message.flags
        self.logger.log_stdout("Somebody asked Kbucket of :", key)
        if flags & Flag.FIND_VALUE and key in self.files:
            reply = Message(
                bytes(key) + self.files[key] + b"\x00",
                Flag.FIND_NODE | Flag.ANSWER | Flag.FIND_VALUE | Flag.VALUE_FOUND,
            )
            self.messenger.send(message.sender, reply)
            return
        bucket = self.neighbours.find_k_closest(key)
        self.logger.log_stdout(bucket.describe())
        reply = generate_find_node_answer(key, bucket)
        reply.flags = reply.flags | (flags & ~RPC_MASK)
        self.messenger.send(message.sender, reply)

    def _on_find_answer(self, message: Message, me: Node) -> None:
        if len(message.data) < KEY_BYTES:
            return
        key = Key(message.data[:KEY_BYTES])
        flags = message.flags
        sender = message.sender
        if sender != me:
            self.logger.log_stdout("Received answer for key: ", key)
        search = self.searches.get(key)
        if search is None:
            return
        if flags & Flag.VALUE_FOUND:
            self.logger.log_both(
                "Found value  - Key:", key, "Value:", message.data[KEY_BYTES:]
            )
            del self.searches[key]
            return
        try:
            bucket = Kbucket.deserialize(message.data[KEY_BYTES:])
        except ValueError:
            return
        search.add_answer(sender, bucket)
        targets = search.query_to()
        if targets:
            request = generate_find_node_request(key)
            request.flags = request.flags | (flags & ~(RPC_MASK | Flag.ANSWER))
            for node in targets:
                self.messenger.send(node, request)
        elif targets is not None:
            result = search.answer()
            del self.searches[key]
            self.logger.log_stdout("KBucket for key ", key, " result: ", result)
            if flags & Flag.STORE_REQUEST:
                self.store(key, result)
        else:
            # Answers are still pending: come back to this search later.
            self.messenger.send(me, message)

    # -- background work ---------------------------------------------------

    def start(self) -> None:
        """Handle queued messages and clean lookups in background threads."""
        if self._threads:
            raise RuntimeError("performer already started")
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._run, name="kadnet-performer", daemon=True),
            threading.Thread(target=self._clean_loop, name="kadnet-cleaner", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                message = self.messenger.queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            try:
                self.handle(message)
            except (ValueError, OSError) as error:
                self.logger.log_both(LOGGER_PERFORMER, "Could not handle message:", error)

    def _clean_loop(self) -> None:
        while not self._stop.wait(self.timeout):
            try:
                self.clean_searches()
            except (ValueError, OSError) as error:
                self.logger.log_both(LOGGER_PERFORMER, "Could not clean searches:", error)

    def stop(self) -> None:
        """Stop the background threads and cancel pending bucket updates."""
        self._stop.set()
        for thread in self._threads:
            thread.join()
        self._threads = []
        self.updater.close()

    def clean_searches(self, now: Optional[float] = None) -> List[Key]:
        """Drop timed-out nodes from every lookup.

        A lookup left with nothing pending gets an empty answer sent to this
        peer so that it moves on. Returns the keys of those lookups.
        """
        with self._lock:
            expired = [key for key, search in list(self.searches.items()) if search.clean(now)]
        me = self.messenger.myself()
        for key in expired:
            self.logger.log_file(
                LOGGER_SEARCHNODE,
                "Sending empty Kbucket because every pending node timed out",
            )
            self.messenger.send(me, generate_find_node_answer(key, Kbucket()))
        return expired

    # -- remote procedures -------------------------------------------------

    def ping(self, node: Node) -> None:
        """Send a ping to ``node``."""
        self.messenger.send(node, Message(flags=Flag.PING))

    def pong(self, node: Node) -> None:
        """Answer a ping from ``node``."""
        self.messenger.send(node, Message(flags=Flag.PING | Flag.ANSWER))

    def _new_search(self, key: Key, bucket: Kbucket) -> SearchNode:
        search = SearchNode(key, bucket)
        search.timeout = self.timeout
        return search

    def _start_search(self, key: Key, request: Message) -> bool:
        bucket = self.neighbours.find_k_closest(key)
        if not len(bucket):
            print("WARNING: no node found in all kbuckets")
            return False
        with self._lock:
            search = self.searches.get(key)
            if search is None:
                search = self.searches[key] = self._new_search(key, bucket)
            targets = search.query_to() or []
        for node in targets:
            self.messenger.send(node, request)
        return True

    def store_request(self, value: str) -> Key:
        """Look up the nodes closest to the hash of ``value`` and store it there.

        Returns the key of the value.
        """
        encoded = value.encode("utf-8")
        if KEY_BYTES + len(encoded) + 1 > MAX_DATA:
            raise ValueError(f"value too long: {len(encoded)} bytes")
        key = Key.from_string(value)
        with self._lock:
            self.store_tmp.setdefault(key, value)
        request = generate_find_node_request(key)
        request.flags = request.flags | Flag.STORE_REQUEST
        self._start_search(key, request)
        return key

    def store(self, key: Key, bucket: Kbucket) -> bool:
        """Send the value waiting under ``key`` to every node of ``bucket``.

        Returns False if no value was waiting.
        """
        with self._lock:
            value = self.store_tmp.pop(key, None)
        if value is None:
            return False
        message = Message(bytes(key) + value.encode("utf-8") + b"\x00", Flag.STORE)
        self.logger.log_both(
            "Storing the value: ", value, "in the following bucket: ", bucket
        )
        for node in bucket:
            self.messenger.send(node, message)
        return True

    def find_node(self, key: Key) -> bool:
        """Start looking up the nodes closest to ``key``.

        Returns False when no node is known to ask.
        """
        return self._start_search(key, generate_find_node_request(key))

    def find_value(self, key: Key) -> Optional[bytes]:
        """The value under ``key`` if held here; otherwise start looking it up."""
        with self._lock:
            local = self.files.get(key)
        if local is not None:
            return local
        request = generate_find_node_request(key)
        request.flags = request.flags | Flag.FIND_VALUE
        self._start_search(key, request)
        return None

    def has_value(self, key: Key) -> bool:
        """True if this peer holds a value under ``key``."""
        with self._lock:
            return key in self.files

    def join(self, gateway: Node) -> Key:
        """Enter the network through ``gateway`` by looking up this peer's own key."""
        key = self.messenger.myself().key
        with self._lock:
            if key not in self.searches:
                self.searches[key] = self._new_search(key, Kbucket([gateway]))
        self.messenger.send(gateway, generate_find_node_request(key))
        return key

    def describe_values(self) -> str:
        """The text values held by this peer with their keys."""
        lines = ["---------- TEXT VALUES STORED ON THIS SERVER ----------"]
        with self._lock:
            items = list(self.files.items())
        for key, value in items:
            if is_printable(value):
                text = value.decode("utf-8", errors="replace")
                lines.extend([f"KEY: {key}", f"TEXT: {text}", ""])
        lines.append("-------------------------------------------------------")
        return "\n".join(lines)