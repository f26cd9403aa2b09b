# kadnet

kadnet is a small Kademlia distributed hash table node. It talks to its
peers over UDP. Each node has a 160-bit SHA-1 key, derived from its
address and port. It keeps its neighbours in 160 k-buckets of up to six
nodes each, ordered by XOR distance. It runs iterative FIND_NODE lookups
to store values on the nodes closest to a key and to find those values
again.

## Installation

```
pip install .
```

To also install what the tests need:

```
pip install .[test]
```

There are no runtime dependencies beyond the standard library.

## Running a node

Start the first node of a network. Use `-x` to stay on a private network:

```
kadnet -x -P 5000
```

Join an existing network through a gateway node:

```
kadnet -x -P 5001 -i 192.168.1.10 -p 5000
```

Options:

- `-i IP`: address of the gateway node to join through. It must not be
  127.0.0.1, and `-p` must be given with it.
- `-p PORT`: port of the gateway node.
- `-P PORT`: port to use on this host. It must be above 1024. If it is
  left out, a random port from 1025 to 65535 is picked.
- `-x`: use a private network. The address announced to other peers is the
  first one reported by the operating system (`hostname -I` on Linux,
  `ifconfig` on macOS).
- `-l LEVEL`: log level. Values above 3 are treated as 3.
  - `0` logs nothing.
  - `1` logs to stdout. This is the default.
  - `2` logs to a file.
  - `3` logs everywhere.
- `-h`: show help.

Without `-x`, the node asks the service named in the environment variable
`KADNET_IP_ECHO_URL` for its public address. That service must answer with
the address as plain text. If the variable is not set, the private address
is used instead. If the request fails, the node uses 127.0.0.1.

File logs are written to `log_<ip>_<port>_<timestamp>.log` in the working
directory.

Once the node is running, it shows a menu with these commands:

1. Store Value
2. Find Value
3. Find Node
4. Ping
5. Print values map
6. Print kbuckets
7. Exit

Keys are entered as `0x` followed by 40 hexadecimal digits, such as
`0xf93298f3e3a0a9279ad336504e3da760b1f4797c`. Find Value prints the value
at once if this node holds it. Otherwise it starts a lookup, and the
result appears in the log.

The command can also be started as `python -m kadnet.cli`.

## Using the library

The building blocks can be imported directly:

```python
from kadnet.ip import Ip
from kadnet.key import Key
from kadnet.node import Node
from kadnet.distance import Distance
from kadnet.kbucket import Kbucket

a = Node(Ip("10.0.0.1"), 4000)
b = Node(Ip("10.0.0.2"), 4000)
print(Distance(a, b).value)

bucket = Kbucket()
bucket.add_node(a)
restored = Kbucket.deserialize(bucket.serialize())
assert a in restored

print(Key.from_string("hello"))
```

Other modules:

- `kadnet.message`: `Message`, `Flag` and the datagram format, which is a
  12-byte header followed by up to 500 bytes of payload.
- `kadnet.logger`: `Logger` and `LogLevel`.
- `kadnet.messenger`: `Messenger`, which sends and receives messages over a
  UDP socket and puts received messages on a queue.
- `kadnet.neighbours`: `NeighbourManager`, the routing table.
- `kadnet.updater`: `Updater`. When a bucket is full, it pings the least
  recently seen node and replaces that node if no pong arrives in time.
- `kadnet.search`: `SearchNode`, the state of one iterative lookup.
- `kadnet.performer`: `Performer`, which answers PING, STORE and FIND_NODE
  messages and drives lookups.
- `kadnet.cli`: the `kadnet` command.
- `kadnet.endpoint`: `IpEndpoint` and `to_ip_endpoint`, an IPv4 or IPv6
  address with a port.
- `kadnet.node_id`: `NodeId`, a 160-bit identifier with bit access, and
  `distance`, the XOR of two identifiers.

`kadnet.endpoint` and `kadnet.node_id` are standalone helpers. The node and
the command do not use them.

## What it does not do

- Stored values are kept in memory only. They are lost when the node exits,
  and they are never republished or expired.
- A key can be stored only once on a node. A second store under the same
  key is refused.
- Only IPv4 is used for peers.
- There is no programmatic session API for saving and loading values. The
  `kadnet` console, or a `Performer` driven directly, is the only front end.