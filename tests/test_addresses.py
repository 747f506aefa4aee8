import ipaddress

import pytest

from statefw.addresses import (
    format_ip,
    format_ip_net,
    mask_length,
    parse_ip,
    parse_ip_net,
)


def test_parse_ip_is_big_endian_host_order():
    assert parse_ip("192.168.60.1") == int(ipaddress.IPv4Address("192.168.60.1"))


def test_parse_ip_loopback_matches_kernel_constant():
    assert parse_ip("127.0.0.1") == 2130706433


@pytest.mark.parametrize("text", ["1.2.3", "1.2.3.4.5", "a.b.c.d", "256.0.0.1", "1.2.-3.4", ""])
def test_parse_ip_rejects_bad_text(text):
    with pytest.raises(ValueError):
        parse_ip(text)


@pytest.mark.parametrize("length", [0, 1, 8, 24, 25, 30, 31, 32])
def test_parse_ip_net_mask_bits(length):
    ip, mask = parse_ip_net(f"192.168.60.200/{length}")
    assert ip == int(ipaddress.IPv4Address("192.168.60.200"))
    assert mask == int(ipaddress.IPv4Network(f"0.0.0.0/{length}").netmask)


@pytest.mark.parametrize("text", ["10.0.0.1", "10.0.0.1/33", "10.0.0.1/-1", "10.0.0.1/x"])
def test_parse_ip_net_rejects_bad_text(text):
    with pytest.raises(ValueError):
        parse_ip_net(text)


@pytest.mark.parametrize("length", range(33))
def test_mask_length_round_trip(length):
    _, mask = parse_ip_net(f"0.0.0.0/{length}")
    assert mask_length(mask) == length


def test_mask_length_counts_from_lowest_set_bit():
    # Only trailing zeros matter, as in the rule table printer.
    assert mask_length(1) == 32
    assert mask_length(0) == 0


@pytest.mark.parametrize("text", ["0.0.0.0", "255.255.255.255", "192.168.60.1", "10.1.2.3"])
def test_format_ip_round_trip(text):
    assert format_ip(parse_ip(text)) == text


@pytest.mark.parametrize("text", ["192.168.60.1/30", "0.0.0.0/0", "10.0.0.7/32", "172.16.0.0/12"])
def test_format_ip_net_round_trip(text):
    assert format_ip_net(*parse_ip_net(text)) == text