"""Sending and receiving messages between peers over UDP."""

from __future__ import annotations

import os
import queue
import socket
import subprocess
import sys
import threading
import urllib.request
from typing import Optional

from kadnet.ip import Ip
from kadnet.key import QUEUE_LENGTH
from kadnet.logger import LOGGER_OUTGOING, Logger
from kadnet.message import HEADER_SIZE, MAX_DATA, Flag, Message
from kadnet.node import Node

#: Environment variable naming a service that answers with the caller's public IP.
IP_ECHO_URL_VARIABLE = "KADNET_IP_ECHO_URL"

_DATAGRAM_SIZE = HEADER_SIZE + MAX_DATA
_REPLY_LIMIT = 15
_POLL_SECONDS = 0.2

_LINUX_COMMAND = ["hostname", "-I"]
_DARWIN_COMMAND = (
    "ifconfig | sed -En 's/127.0.0.1//;"
    "s/.*inet (addr:)?(([0-9]*\\.){3}[0-9]*).*/\\2/p'"
)


def parse_ip_reply(text: str) -> str:
    """The address in a reply: text up to the first line break, at most 15 characters."""
    head = text[:_REPLY_LIMIT]
    for separator in ("\r", "\n"):
        head = head.split(separator, 1)[0]
    return head


def detect_private_ip() -> Ip:
    """Ask the operating system for the first address of this machine.

    Gives 127.0.0.1 when no address can be read.
    """
    if sys.platform.startswith("win"):
        raise OSError("operating system not recognised")
    try:
        if sys.platform == "darwin":
            result = subprocess.run(
                _DARWIN_COMMAND, shell=True, capture_output=True, text=True, check=False
            )
        else:
            result = subprocess.run(
                _LINUX_COMMAND, capture_output=True, text=True, check=False
            )
    except OSError:
        return Ip()
    tokens = result.stdout.split()
    return Ip(tokens[0] if tokens else "")


def detect_public_ip() -> Ip:
    """Ask the service named in KADNET_IP_ECHO_URL for this machine's public address.

    Without such a service the private address is used instead; a failed
    request gives 127.0.0.1.
    """
    url = os.environ.get(IP_ECHO_URL_VARIABLE)
    if not url:
        return detect_private_ip()
    request = urllib.request.Request(url, headers={"User-Agent": "kadnet/1.0"})
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            body = response.read(64)
    except OSError:
        return Ip()
    return Ip(parse_ip_reply(body.decode("ascii", errors="replace")))


class Messenger:
    """Sends messages to nodes and puts the received ones on a queue.

    ``port`` is the local port in host order; with 0 the system picks one
    when :meth:`start` binds the socket. ``ip`` is the address announced to
    other peers; without one the private address of the machine is used.
    """

    def __init__(
        self,
        port: int,
        queue: "queue.Queue[Message]",
        logger: Optional[Logger] = None,
        ip: Optional[Ip] = None,
    ) -> None:
        if queue is None:
            raise ValueError("a messenger needs a queue for received messages")
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"port {port} does not fit in 16 bits")
        self.port = port
        self.queue = queue
        self.logger = logger if logger is not None else Logger()
        self.ip = ip if ip is not None else detect_private_ip()
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def start(self) -> None:
        """Bind the socket and start receiving in a background thread."""
        if self._socket is not None:
            raise RuntimeError("messenger already started")
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.bind(("", self.port))
        except OSError:
            sock.close()
            raise
        sock.settimeout(_POLL_SECONDS)
        self.port = sock.getsockname()[1]
        self._socket = sock
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._listen, name="kadnet-listener", daemon=True
        )
        self._thread.start()

    def _listen(self) -> None:
        sock = self._socket
        while sock is not None and not self._stop.is_set():
            try:
                packet, _ = sock.recvfrom(_DATAGRAM_SIZE)
            except socket.timeout:
                continue
            except OSError:
                break
            try:
                message = Message.from_datagram(packet)
            except ValueError:
                continue
            if self.queue.qsize() < QUEUE_LENGTH:
                try:
                    self.queue.put_nowait(message)
                except queue.Full:
                    pass

    def send(self, node: Node, message: Message) -> None:
        """Send ``message`` to ``node``, stamped with this peer's address and port."""
        if self._socket is None:
            raise RuntimeError("messenger not started")
        if node != self.myself():
            self.logger.log_file(
                LOGGER_OUTGOING, "Message to", node, "with flags:", Flag(message.flags)
            )
        packet = message.to_datagram(self.ip, self.port)
        self._socket.sendto(packet, (str(node.ip), node.port))

    def myself(self) -> Node:
        """The node this messenger speaks for."""
        return Node(self.ip, self.port)

    def close(self) -> None:
        """Stop receiving and close the socket."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def __enter__(self) -> "Messenger":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()