import io
import queue
import subprocess
from unittest import mock

import pytest

from kadnet.ip import Ip
from kadnet.logger import Logger, LogLevel
from kadnet.message import Flag, Message
from kadnet.messenger import (
    IP_ECHO_URL_VARIABLE,
    Messenger,
    detect_private_ip,
    detect_public_ip,
    parse_ip_reply,
)
from kadnet.node import Node


def test_parse_ip_reply_stops_at_newline():
    assert parse_ip_reply("203.0.113.5\n") == "203.0.113.5"


def test_parse_ip_reply_stops_at_carriage_return():
    assert parse_ip_reply("203.0.113.5\r\nextra") == "203.0.113.5"


def test_parse_ip_reply_limits_length():
    text = "1234567890123456789"
    assert parse_ip_reply(text) == text[:15]


def _completed(stdout):
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout)


def test_detect_private_ip_takes_first_address():
    with mock.patch("sys.platform", "linux"), mock.patch(
        "kadnet.messenger.subprocess.run",
        return_value=_completed("192.168.1.20 10.0.0.3 \n"),
    ):
        assert detect_private_ip() == Ip("192.168.1.20")


def test_detect_private_ip_without_output_is_localhost():
    with mock.patch("sys.platform", "linux"), mock.patch(
        "kadnet.messenger.subprocess.run", return_value=_completed("")
    ):
        assert detect_private_ip().is_localhost()


def test_detect_private_ip_unknown_platform():
    with mock.patch("sys.platform", "win32"):
        with pytest.raises(OSError):
            detect_private_ip()


def test_detect_public_ip_falls_back_to_private(monkeypatch):
    monkeypatch.delenv(IP_ECHO_URL_VARIABLE, raising=False)
    with mock.patch("sys.platform", "linux"), mock.patch(
        "kadnet.messenger.subprocess.run", return_value=_completed("10.1.2.3\n")
    ):
        assert detect_public_ip() == Ip("10.1.2.3")


def test_detect_public_ip_uses_service(monkeypatch):
    monkeypatch.setenv(IP_ECHO_URL_VARIABLE, "http://localhost/ip")
    with mock.patch(
        "kadnet.messenger.urllib.request.urlopen",
        return_value=io.BytesIO(b"198.51.100.7\n"),
    ):
        assert detect_public_ip() == Ip("198.51.100.7")


def test_detect_public_ip_failed_request_is_localhost(monkeypatch):
    monkeypatch.setenv(IP_ECHO_URL_VARIABLE, "http://localhost/ip")
    with mock.patch(
        "kadnet.messenger.urllib.request.urlopen", side_effect=OSError("down")
    ):
        assert detect_public_ip().is_localhost()


def test_queue_is_required():
    with pytest.raises(ValueError):
        Messenger(0, None, ip=Ip("127.0.0.1"))


def test_send_before_start_fails():
    messenger = Messenger(0, queue.Queue(), ip=Ip("127.0.0.1"))
    with pytest.raises(RuntimeError):
        messenger.send(Node("127.0.0.1", 9), Message(b"x"))


def test_start_twice_fails():
    with Messenger(0, queue.Queue(), ip=Ip("127.0.0.1")) as messenger:
        messenger.start()
        with pytest.raises(RuntimeError):
            messenger.start()


def test_round_trip_between_two_messengers():
    inbox = queue.Queue()
    with Messenger(0, queue.Queue(), ip=Ip("127.0.0.1")) as sender, Messenger(
        0, inbox, ip=Ip("127.0.0.1")
    ) as receiver:
        sender.start()
        receiver.start()
        assert receiver.myself().port == receiver.port
        sender.send(receiver.myself(), Message(b"hello", Flag.PING))
        received = inbox.get(timeout=5)
        assert received.data == b"hello"
        assert received.flags == Flag.PING
        assert received.sender == sender.myself()


def test_outgoing_message_is_logged(tmp_path):
    log_path = tmp_path / "peer.log"
    logger = Logger(LogLevel.FILE, log_path)
    inbox = queue.Queue()
    with Messenger(0, queue.Queue(), logger, Ip("127.0.0.1")) as sender, Messenger(
        0, inbox, ip=Ip("127.0.0.1")
    ) as receiver:
        sender.start()
        receiver.start()
        sender.send(receiver.myself(), Message(flags=Flag.PING))
        inbox.get(timeout=5)
    logger.close()
    content = log_path.read_text()
    expected = f"[OUTGOING] Message to 127.0.0.1:{receiver.port} with flags: RPC_PING"
    assert expected in content