"""Stateful packet filtering: rule matching, connection tracking and logging."""

import datetime
import threading
from dataclasses import replace

from .models import (
    CONNECT_TIME,
    HASH_SIZE,
    LOG_MAX,
    RULE_MAX,
    ConnectionRecord,
    LogEntry,
    Protocol,
)

_LOG_TIMEZONE = datetime.timezone(datetime.timedelta(hours=8))


def _build_crc_table():
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0xA001 if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_CRC_TABLE = _build_crc_table()


def crc16(data, crc=0):
    """CRC-16 with the reflected 0x8005 polynomial, continuing from ``crc``."""
    crc &= 0xFFFF
    for byte in data:
        crc = (crc >> 8) ^ _CRC_TABLE[(crc ^ byte) & 0xFF]
    return crc


def packet_hash(packet):
    """Slot of a packet's flow in the connection timeout table."""
    return crc16(packet.key_bytes(), 0xFFFF)


def _default_log_time():
    return datetime.datetime.now(_LOG_TIMEZONE).replace(tzinfo=None, microsecond=0)


class Firewall:
    """Rule table, connection table and log ring of the filtering engine."""

    def __init__(self, rules=(), default_action=False):
        self.default_action = default_action
        self._rules = []
        self._rules_lock = threading.Lock()
        self._timeouts = bytearray(HASH_SIZE)
        self._connections = []
        self._connections_lock = threading.Lock()
        self._log_slots = [None] * LOG_MAX
        self._log_size = 0
        self._log_pos = LOG_MAX - 1
        self._log_lock = threading.Lock()
        self.set_rules(rules)

    def set_rules(self, rules):
        """Replace the rule table, checked in order by ``match_rule``."""
        rules = list(rules)
        if len(rules) > RULE_MAX:
            raise ValueError(f"at most {RULE_MAX} rules are allowed, got {len(rules)}")
        with self._rules_lock:
            self._rules = rules

    @property
    def rules(self):
        with self._rules_lock:
            return list(self._rules)

    def match_rule(self, packet):
        """Return ``(action, log)`` from the first matching rule, or the default."""
        with self._rules_lock:
            for rule in self._rules:
                if (rule.src_ip ^ packet.src_ip) & rule.src_mask:
                    continue
                if (rule.dst_ip ^ packet.dst_ip) & rule.dst_mask:
                    continue
                if rule.protocol and rule.protocol != packet.protocol:
                    continue
                if rule.src_port and rule.src_port != packet.src_port:
                    continue
                if rule.dst_port and rule.dst_port != packet.dst_port:
                    continue
                return bool(rule.action), bool(rule.log)
        return bool(self.default_action), False

    def find_connection(self, packet):
        """Report whether the flow is tracked, refreshing its timeout if so."""
        index = packet_hash(packet)
        with self._connections_lock:
            if not self._timeouts[index]:
                return False
            self._timeouts[index] = CONNECT_TIME
            return True

    def add_connection(self, packet):
        """Start tracking a flow; the newest connection comes first."""
        index = packet_hash(packet)
        with self._connections_lock:
            self._connections.insert(0, (packet, index))
            self._timeouts[index] = CONNECT_TIME

    def record_log(self, packet, action, when=None):
        """Append a decision to the log ring, overwriting the oldest when full."""
        if when is None:
            when = _default_log_time()
        entry = LogEntry(
            when,
            packet.src_ip,
            packet.dst_ip,
            packet.src_port,
            packet.dst_port,
            packet.protocol,
            bool(action),
        )
        with self._log_lock:
            self._log_pos = (self._log_pos + 1) % LOG_MAX
            if self._log_size != LOG_MAX:
                self._log_size += 1
            self._log_slots[self._log_pos] = entry
        return entry

    def _decide_new(self, packet, when, log_allowed=True):
        action, log = self.match_rule(packet)
        if log and log_allowed:
            self.record_log(packet, action, when)
        if action:
            self.add_connection(packet)
        return action

    def _is_tracked(self, packet):
        return self.find_connection(packet) or self.find_connection(packet.reversed())

    def handle_packet(self, packet, syn=False, ack=False, when=None):
        """Decide whether an outgoing packet passes; ``True`` means accept."""
        protocol = packet.protocol
        if protocol == Protocol.TCP:
            if syn and not ack:
                return self._decide_new(packet, when)
            return self._is_tracked(packet)
        if protocol in (Protocol.UDP, Protocol.ICMP):
            if protocol == Protocol.ICMP:
                packet = replace(packet, src_port=0, dst_port=0)
            if self._is_tracked(packet):
                return True
            return self._decide_new(packet, when)
        packet = replace(packet, protocol=Protocol.UDP)
        if self.find_connection(packet):
            return True
        return self._decide_new(packet, when, log_allowed=False)

    def tick(self):
        """Age every connection by one second and drop those that expired."""
        with self._connections_lock:
            survivors = []
            for packet, index in self._connections:
                self._timeouts[index] = (self._timeouts[index] - 1) & 0xFF
                if self._timeouts[index]:
                    survivors.append((packet, index))
            self._connections = survivors

    def connections(self):
        """Tracked connections, newest first, with their remaining timeout."""
        with self._connections_lock:
            return [
                ConnectionRecord(
                    packet.src_ip,
                    packet.dst_ip,
                    packet.src_port,
                    packet.dst_port,
                    packet.protocol,
                    self._timeouts[index],
                )
                for packet, index in self._connections
            ]

    def logs(self):
        """Logged entries in ring-slot order."""
        with self._log_lock:
            return self._log_slots[: self._log_size]