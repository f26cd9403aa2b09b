"""Command-line peer: joins or starts a network and takes commands from the user."""

from __future__ import annotations

import getopt
import queue
import random
import re
import sys
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from kadnet.ip import Ip
from kadnet.key import KEY_BYTES, Key
from kadnet.logger import LogLevel, Logger, log_file_name
from kadnet.messenger import Messenger, detect_private_ip, detect_public_ip
from kadnet.node import Node
from kadnet.performer import Performer

UI_STORE_VALUE = 1
UI_FIND_VALUE = 2
UI_FIND_NODE = 3
UI_PING = 4
UI_PRINT_VALUES = 5
UI_PRINT_KBUCKETS = 6
UI_EXIT = 7

HELP = (
    "Flags:\n"
    "-i [char*] The ip to connect to on the remote host\n"
    "-p [ uint] The port to connect to on the remote host\n"
    "-P [ uint] The port to use on this host\n"
    "-x [     ] Use a private network\n"
    "-l [ uint] Set the log level:\n"
    "\t0 - Log nothing\n"
    "\t1 - Log only to stdout <default>\n"
    "\t2 - Log only to file\n"
    "\t3 - Log everywhere\n"
    "-h [     ] Print this wonderful help :)"
)

MENU = "\n".join(
    [
        "Choose a command:",
        f"[{UI_STORE_VALUE}] Store Value",
        f"[{UI_FIND_VALUE}] Find Value",
        f"[{UI_FIND_NODE}] Find Node",
        f"[{UI_PING}] Ping",
        f"[{UI_PRINT_VALUES}] Print values map",
        f"[{UI_PRINT_KBUCKETS}] Print kbuckets",
        f"[{UI_EXIT}] Exit",
    ]
)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class UsageError(ValueError):
    """The command line could not be understood."""


@dataclass
class Options:
    """What the command line asks for."""

    show_help: bool = False
    private_net: bool = False
    gateway: Optional[Ip] = None
    port_dest: int = 0
    port_host: int = 0
    log_level: int = int(LogLevel.STDOUT)


def _leading_int(text: str) -> Optional[int]:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def _atoi(text: str) -> int:
    value = _leading_int(text)
    return 0 if value is None else value


def parse_args(argv: Optional[List[str]] = None) -> Options:
    """Read the options; raises UsageError for unknown or incomplete ones."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        pairs, _ = getopt.getopt(args, "hxi:p:P:l:")
    except getopt.GetoptError as error:
        opt = error.opt
        if "requires argument" in error.msg and opt in ("i", "p", "P"):
            raise UsageError(f"Option -{opt} requires an argument") from None
        if opt.isprintable():
            raise UsageError(f"Unknow option `-{opt}`.") from None
        raise UsageError(f"Unknow option character `\\x{ord(opt[0]):x}'.") from None
    options = Options()
    for flag, value in pairs:
        if flag == "-h":
            options.show_help = True
        elif flag == "-x":
            options.private_net = True
        elif flag == "-p":
            options.port_dest = _atoi(value) & 0xFFFF
        elif flag == "-i":
            options.gateway = Ip(value)
        elif flag == "-P":
            options.port_host = _atoi(value) & 0xFFFF
        elif flag == "-l":
            options.log_level = _atoi(value)
    options.log_level = min(max(options.log_level, 0), int(LogLevel.EVERYWHERE))
    return options


def parse_key(text: str) -> Key:
    """Read a key written as "0x" and 40 hexadecimal digits."""
    return Key.from_hex(text)


def run_command(
    performer: Performer,
    command: str,
    read_line: Callable[[], str],
    write: Callable[[str], None],
) -> bool:
    """Carry out one menu command; returns False when the user asks to exit."""
    choice = _leading_int(command)
    if choice == UI_STORE_VALUE:
        write("Insert the value to store:")
        try:
            performer.store_request(read_line())
        except ValueError:
            write("No valid input")
    elif choice == UI_FIND_VALUE:
        write("Insert the key to find the value:")
        text = read_line()
        if len(text) > KEY_BYTES * 2 + 2:
            write("WARNING: key was truncated")
        try:
            key = parse_key(text)
        except ValueError:
            write("No valid input")
        else:
            value = performer.find_value(key)
            if value is not None:
                write(f"Found value: {value.decode('utf-8', errors='replace')}")
    elif choice == UI_FIND_NODE:
        write("Insert the key to find the node:")
        try:
            key = parse_key(read_line())
        except ValueError:
            write("No valid input")
        else:
            write(f"KEY: {key}")
            performer.find_node(key)
    elif choice == UI_PING:
        write("Insert the ip:")
        hostname = read_line()
        write("Insert the port:")
        port = _atoi(read_line()) & 0xFFFF
        performer.ping(Node(Ip(hostname), port))
    elif choice == UI_PRINT_VALUES:
        write(performer.describe_values())
    elif choice == UI_PRINT_KBUCKETS:
        write(performer.neighbours.describe())
    elif choice == UI_EXIT:
        write("Bye")
        return False
    else:
        write("No valid input")
    return True


def _read_line() -> str:
    return sys.stdin.readline().rstrip("\r\n")


def main(argv: Optional[List[str]] = None) -> int:
    """Run a peer from the command line; returns the exit status."""
    try:
        options = parse_args(argv)
    except UsageError as error:
        print(error, file=sys.stderr)
        return 1
    if options.show_help:
        print(HELP)
        return 0

    port_host = options.port_host
    if port_host == 0:
        port_host = random.randrange(1025, 65536)
    elif port_host <= 1024:
        print("Reserved port, use a port >1024 and <65537", file=sys.stderr)
        return 1

    gateway = options.gateway
    if gateway is not None and (gateway.is_localhost() or options.port_dest == 0):
        print("Missing gateway ip or port", file=sys.stderr)
        return 1

    logger = Logger(options.log_level)
    ip = detect_private_ip() if options.private_net else detect_public_ip()
    messenger = Messenger(port_host, queue.Queue(), logger, ip)
    try:
        messenger.start()
    except OSError as error:
        print(error, file=sys.stderr)
        return 1
    logger.path = log_file_name(messenger.ip, messenger.port, int(time.time()))

    if gateway is None:
        private = options.private_net
    else:
        private = gateway.is_private()
    print("Private network" if private else "Public network")

    performer = Performer(messenger, logger)
    performer.start()
    try:
        me = messenger.myself()
        print(f"My ip: {me.ip}")
        print(f"My port: {me.port}")
        print(f"My key: {me.key}")
        if gateway is not None:
            performer.join(Node(gateway, options.port_dest))
        while True:
            print(MENU)
            line = sys.stdin.readline()
            if not line:
                break
            if not run_command(performer, line, _read_line, print):
                break
    except KeyboardInterrupt:
        pass
    finally:
        performer.stop()
        messenger.close()
        logger.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())