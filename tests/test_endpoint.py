import ipaddress

import pytest

from kadnet.endpoint import IpEndpoint, to_ip_endpoint


def test_ipv4_endpoint():
    endpoint = to_ip_endpoint("127.0.0.1", 27980)
    assert endpoint.address == ipaddress.IPv4Address("127.0.0.1")
    assert endpoint.port == 27980
    assert str(endpoint) == "127.0.0.1:27980"


def test_ipv6_endpoint():
    endpoint = to_ip_endpoint("::1", 27980)
    assert endpoint.address == ipaddress.IPv6Address("::1")
    assert str(endpoint) == "::1:27980"


def test_equality():
    assert to_ip_endpoint("10.0.0.1", 1) == to_ip_endpoint("10.0.0.1", 1)
    assert not to_ip_endpoint("10.0.0.1", 1) == to_ip_endpoint("10.0.0.1", 2)
    assert not to_ip_endpoint("10.0.0.1", 1) == to_ip_endpoint("10.0.0.2", 1)


def test_hashable():
    endpoints = {to_ip_endpoint("0.0.0.0", 80), to_ip_endpoint("0.0.0.0", 80)}
    assert len(endpoints) == 1


@pytest.mark.parametrize("text", ["not an ip", "300.1.1.1", ""])
def test_invalid_address(text):
    with pytest.raises(ValueError):
        to_ip_endpoint(text, 80)


@pytest.mark.parametrize("port", [-1, 65536])
def test_invalid_port(port):
    with pytest.raises(ValueError):
        IpEndpoint(ipaddress.ip_address("127.0.0.1"), port)