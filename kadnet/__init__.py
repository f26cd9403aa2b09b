"""A Kademlia distributed hash table node over UDP, with keys, k-buckets, lookups and a console."""

__version__ = "0.1.0"