"""The control device and the outgoing-packet hook in front of the engine."""

import enum

from .engine import Firewall
from .models import BUFFER_SIZE, LogEntry, Operation, Rule
from .addresses import parse_ip

LOOPBACK = parse_ip("127.0.0.1")


class Verdict(enum.Enum):
    """Outcome of the packet hook."""

    ACCEPT = "accept"
    DROP = "drop"


class FirewallDevice:
    """Command-driven interface: write a command, then read its answer."""

    def __init__(self, firewall=None):
        self.firewall = firewall if firewall is not None else Firewall()
        self.enabled = True
        self.operation = Operation.WRITE_RULE

    def write(self, data):
        """Handle a command buffer; return the number of bytes consumed."""
        data = bytes(data)
        if len(data) > BUFFER_SIZE:
            return 0
        if not data:
            raise ValueError("command buffer is empty")
        code = data[0]
        try:
            operation = Operation(code)
        except ValueError:
            operation = code
        self.operation = operation

        if operation == Operation.WRITE_RULE:
            count = (len(data) - 1) // Rule.SIZE
            payload = data[1 : 1 + count * Rule.SIZE]
            self.firewall.set_rules(
                Rule.from_bytes(payload[offset : offset + Rule.SIZE])
                for offset in range(0, len(payload), Rule.SIZE)
            )
        elif operation == Operation.FW_OPEN:
            self.enabled = True
        elif operation == Operation.FW_CLOSE:
            self.enabled = False
        elif operation == Operation.DEFAULT_ACCEPT:
            self.firewall.default_action = True
        elif operation == Operation.DEFAULT_DROP:
            self.firewall.default_action = False
        return len(data)

    def read(self, size=BUFFER_SIZE):
        """Return the answer to the last command: a count byte and records."""
        operation = self.operation
        if operation == Operation.GET_NAT:
            rules = self.firewall.rules
            body = b"".join(rule.to_bytes() for rule in rules)
            if len(body) > size:
                raise OverflowError("rule table does not fit the read buffer")
            return bytes([len(rules) & 0xFF]) + body
        if operation == Operation.GET_CONNECT:
            records = self.firewall.connections()
            return bytes([len(records) & 0xFF]) + b"".join(
                record.to_bytes() for record in records
            )
        if operation == Operation.GET_LOG:
            entries = self.firewall.logs()
            if len(entries) * LogEntry.SIZE > size:
                raise OverflowError("log table does not fit the read buffer")
            return bytes([len(entries) & 0xFF]) + b"".join(
                entry.to_bytes() for entry in entries
            )
        return b""

    def hook_local_out(self, packet, syn=False, ack=False, when=None):
        """Filter one outgoing packet; loopback traffic always passes."""
        if LOOPBACK in (packet.src_ip, packet.dst_ip):
            return Verdict.ACCEPT
        if not self.enabled:
            return Verdict.ACCEPT
        if self.firewall.handle_packet(packet, syn, ack, when):
            return Verdict.ACCEPT
        return Verdict.DROP