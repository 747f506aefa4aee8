import datetime

import pytest

from statefw.addresses import parse_ip
from statefw.device import FirewallDevice, Verdict
from statefw.models import (
    BUFFER_SIZE,
    CONNECT_TIME,
    ConnectionRecord,
    LogEntry,
    Operation,
    Packet,
    Protocol,
    Rule,
)

HOST = parse_ip("192.168.60.1")
SERVER = parse_ip("192.168.60.200")
LOOPBACK = parse_ip("127.0.0.1")
WHEN = datetime.datetime(2024, 1, 2, 3, 4, 5)


def rules_command(rules):
    return bytes([Operation.WRITE_RULE]) + b"".join(rule.to_bytes() for rule in rules)


def command(operation):
    return bytes([operation])


@pytest.fixture
def rules():
    return [
        Rule.parse("192.168.60.1/32 192.168.60.200/25 0 7777 6 1 1"),
        Rule.parse("0.0.0.0/0 0.0.0.0/0 0 53 17 1 1"),
    ]


def test_write_rules_and_read_back(rules):
    device = FirewallDevice()
    data = rules_command(rules)
    assert device.write(data) == len(data)
    device.write(command(Operation.GET_NAT))
    answer = device.read(BUFFER_SIZE)
    assert answer[0] == len(rules)
    body = answer[1:]
    decoded = [Rule.from_bytes(body[i : i + Rule.SIZE]) for i in range(0, len(body), Rule.SIZE)]
    assert decoded == rules


def test_write_rules_ignores_partial_record(rules):
    device = FirewallDevice()
    device.write(rules_command(rules) + b"\x01\x02")
    assert device.firewall.rules == rules


def test_write_too_large_is_refused():
    device = FirewallDevice()
    assert device.write(bytes(BUFFER_SIZE + 1)) == 0
    assert device.firewall.rules == []


def test_write_empty_raises():
    with pytest.raises(ValueError):
        FirewallDevice().write(b"")


def test_read_rules_overflow(rules):
    device = FirewallDevice()
    device.write(rules_command(rules))
    device.write(command(Operation.GET_NAT))
    with pytest.raises(OverflowError):
        device.read(Rule.SIZE)


def test_close_and_open():
    device = FirewallDevice()
    packet = Packet(HOST, SERVER, 1, 2, Protocol.UDP)
    assert device.hook_local_out(packet) is Verdict.DROP
    device.write(command(Operation.FW_CLOSE))
    assert device.enabled is False
    assert device.hook_local_out(packet) is Verdict.ACCEPT
    device.write(command(Operation.FW_OPEN))
    assert device.hook_local_out(packet) is Verdict.DROP


def test_loopback_always_accepted():
    device = FirewallDevice()
    assert device.hook_local_out(Packet(LOOPBACK, SERVER, 1, 2, Protocol.UDP)) is Verdict.ACCEPT
    assert device.hook_local_out(Packet(HOST, LOOPBACK, 1, 2, Protocol.TCP)) is Verdict.ACCEPT
    assert device.firewall.connections() == []


def test_default_accept_and_drop():
    device = FirewallDevice()
    device.write(command(Operation.DEFAULT_ACCEPT))
    assert device.hook_local_out(Packet(HOST, SERVER, 1, 2, Protocol.UDP)) is Verdict.ACCEPT
    device.write(command(Operation.DEFAULT_DROP))
    assert device.hook_local_out(Packet(HOST, SERVER, 3, 4, Protocol.UDP)) is Verdict.DROP


def test_read_connections(rules):
    device = FirewallDevice()
    device.write(rules_command(rules))
    packet = Packet(HOST, SERVER, 5353, 53, Protocol.UDP)
    assert device.hook_local_out(packet, when=WHEN) is Verdict.ACCEPT
    device.write(command(Operation.GET_CONNECT))
    answer = device.read()
    assert answer[0] == 1
    record = ConnectionRecord.from_bytes(answer[1 : 1 + ConnectionRecord.SIZE])
    assert record == ConnectionRecord(HOST, SERVER, 5353, 53, Protocol.UDP, CONNECT_TIME)


def test_read_logs(rules):
    device = FirewallDevice()
    device.write(rules_command(rules))
    device.hook_local_out(Packet(HOST, SERVER, 40000, 7777, Protocol.TCP), syn=True, when=WHEN)
    device.write(command(Operation.GET_LOG))
    answer = device.read()
    assert answer[0] == 1
    entry = LogEntry.from_bytes(answer[1 : 1 + LogEntry.SIZE])
    assert entry.when == WHEN
    assert (entry.src_ip, entry.dst_port, entry.action) == (HOST, 7777, True)


def test_read_logs_overflow(rules):
    device = FirewallDevice()
    device.write(rules_command(rules))
    device.hook_local_out(Packet(HOST, SERVER, 1, 53, Protocol.UDP), when=WHEN)
    device.write(command(Operation.GET_LOG))
    with pytest.raises(OverflowError):
        device.read(LogEntry.SIZE - 1)


def test_read_after_other_command_is_empty():
    device = FirewallDevice()
    device.write(command(Operation.FW_OPEN))
    assert device.read() == b""


def test_unknown_command_is_accepted():
    device = FirewallDevice()
    assert device.write(bytes([42, 1, 2])) == 3
    assert device.operation == 42
    assert device.read() == b""