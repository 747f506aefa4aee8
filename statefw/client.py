"""Control client: rule files, device commands and the interactive shell."""

import argparse
import sys

from .addresses import format_ip, format_ip_net
from .models import BUFFER_SIZE, DEVICE_NAME, ConnectionRecord, LogEntry, Operation, Rule

RULES_PATH = "data/rule.txt"
DEVICE_PATH = f"/dev/{DEVICE_NAME}"

_RULE_RULE = "-" * 82
_CONNECTION_RULE = "-" * 68
_LOG_RULE = "-" * 86


def read_rules(path):
    """Read rules, one per non-blank line, from a text file."""
    with open(path, encoding="utf-8") as stream:
        return [Rule.parse(line) for line in stream if line.strip()]


def write_rules(path, rules):
    """Write rules to a text file in the form ``read_rules`` accepts."""
    with open(path, "w", encoding="utf-8") as stream:
        for rule in rules:
            stream.write(rule.to_text() + "\n")


def format_rules(rules):
    """Render the rule table as numbered rows."""
    rules = list(rules)
    lines = [f"Rule:{len(rules):2d}" + "-" * 75]
    for number, rule in enumerate(rules):
        lines.append(
            f"{number}.| {format_ip_net(rule.src_ip, rule.src_mask):<20}"
            f"| {format_ip_net(rule.dst_ip, rule.dst_mask):<20}"
            f"| {rule.src_port:<5d}| {rule.dst_port:<5d}| {int(rule.protocol):<5d}"
            f"| {int(bool(rule.action)):<5d}| {int(bool(rule.log)):<5d}|"
        )
        lines.append(_RULE_RULE)
    return "\n".join(lines) + "\n"


def format_connections(records):
    """Render tracked connections with their remaining timeout."""
    records = list(records)
    lines = [f"Connection:{len(records):2d}" + "-" * 55]
    for record in records:
        lines.append(
            f"| {format_ip(record.src_ip):<17}| {format_ip(record.dst_ip):<17}"
            f"| {record.src_port:<5d}| {record.dst_port:<5d}| {int(record.protocol):<5d}"
            f"| {str(record.timeout) + 's':<6}|"
        )
        lines.append(_CONNECTION_RULE)
    return "\n".join(lines) + "\n"


def format_logs(entries):
    """Render log entries with their timestamps."""
    entries = list(entries)
    lines = [f"Log:{len(entries):4d}" + "-" * 78]
    for entry in entries:
        lines.append(
            f"| {entry.when:%Y-%m-%d %H:%M:%S} "
            f"| {format_ip(entry.src_ip):<17}| {format_ip(entry.dst_ip):<17}"
            f"| {entry.src_port:<4d}| {entry.dst_port:<4d}| {int(entry.protocol):<4d}"
            f"| {int(bool(entry.action)):<4d}|"
        )
        lines.append(_LOG_RULE)
    return "\n".join(lines) + "\n"


def _decode_records(data, record_type):
    if not data:
        raise ValueError("device returned an empty answer")
    count = data[0]
    size = record_type.SIZE
    body = data[1:]
    if len(body) < count * size:
        raise ValueError(
            f"device answer truncated: {count} records need {count * size} bytes, "
            f"got {len(body)}"
        )
    return [
        record_type.from_bytes(body[offset : offset + size])
        for offset in range(0, count * size, size)
    ]


class DeviceClient:
    """Talks to the control device, either a device object or a device file."""

    def __init__(self, device=None, path=DEVICE_PATH):
        self.device = device
        self.path = path

    def _write(self, data):
        if self.device is not None:
            self.device.write(data)
            return
        with open(self.path, "wb") as stream:
            stream.write(data)

    def _read(self):
        if self.device is not None:
            return self.device.read(BUFFER_SIZE)
        with open(self.path, "rb") as stream:
            return stream.read(BUFFER_SIZE + 1)

    def send_command(self, operation):
        """Send a single command byte."""
        self._write(bytes([Operation(operation)]))

    def commit_rules(self, rules):
        """Replace the device's rule table; return the number of rules sent."""
        rules = list(rules)
        payload = bytes([Operation.WRITE_RULE]) + b"".join(rule.to_bytes() for rule in rules)
        self._write(payload)
        return len(rules)

    def read_connections(self):
        """Fetch the tracked connections."""
        self.send_command(Operation.GET_CONNECT)
        return _decode_records(self._read(), ConnectionRecord)

    def read_logs(self):
        """Fetch the logged decisions."""
        self.send_command(Operation.GET_LOG)
        return _decode_records(self._read(), LogEntry)


_COMMANDS = {
    "firewall open": Operation.FW_OPEN,
    "open": Operation.FW_OPEN,
    "firewall close": Operation.FW_CLOSE,
    "close": Operation.FW_CLOSE,
    "default accept": Operation.DEFAULT_ACCEPT,
    "accept": Operation.DEFAULT_ACCEPT,
    "default drop": Operation.DEFAULT_DROP,
    "drop": Operation.DEFAULT_DROP,
}

_ALIASES = {
    "add rule": "add",
    "remove rule": "remove",
    "modify rule": "modify",
    "ls rule": "rule",
    "commit rule": "commit",
}


class Shell:
    """Line-oriented command loop that edits rules and queries the device."""

    def __init__(self, client, rules=(), stdin=None, stdout=None):
        self.client = client
        self.rules = list(rules)
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout

    def _say(self, text):
        self.stdout.write(text + "\n")

    def _readline(self):
        line = self.stdin.readline()
        if not line:
            raise EOFError
        return line.strip()

    def _read_rule(self):
        self._say("input your rule")
        return Rule.parse(self._readline())

    def _read_index(self):
        self._say("input position of this rule")
        return int(self._readline())

    def _add(self):
        try:
            rule = self._read_rule()
            index = self._read_index()
        except ValueError:
            self._say("error")
            return
        if 0 <= index <= len(self.rules):
            self.rules.insert(index, rule)
        else:
            self._say("error")

    def _remove(self):
        try:
            index = self._read_index()
        except ValueError:
            self._say("error")
            return
        if 0 <= index < len(self.rules):
            del self.rules[index]
        else:
            self._say("error")

    def _modify(self):
        try:
            index = self._read_index()
        except ValueError:
            index = -1
        if not 0 <= index < len(self.rules):
            self._say("Invalid index. Rule not modified.")
            return
        try:
            rule = self._read_rule()
        except ValueError:
            self._say("Invalid rule. Rule not modified.")
            return
        self.rules[index] = rule
        self._say("Rule modified successfully.")

    def _commit(self):
        count = self.client.commit_rules(self.rules)
        self._say(f"Commit {count} rules")

    def _dispatch(self, command):
        if command in _COMMANDS:
            self.client.send_command(_COMMANDS[command])
            return
        command = _ALIASES.get(command, command)
        if command == "add":
            self._add()
        elif command == "remove":
            self._remove()
        elif command == "modify":
            self._modify()
        elif command == "rule":
            self.stdout.write(format_rules(self.rules))
        elif command == "log":
            self.stdout.write(format_logs(self.client.read_logs()))
        elif command == "commit":
            self._commit()
        elif command == "connect":
            self.stdout.write(format_connections(self.client.read_connections()))
        else:
            self._say("Invalid command")

    def run(self):
        """Read and execute commands until ``exit`` or end of input."""
        while True:
            self.stdout.write(">>>")
            self.stdout.flush()
            try:
                command = self._readline()
                if command == "exit":
                    return
                self._dispatch(command)
            except EOFError:
                return
            except OSError:
                self._say("ERROR: open cdev")
            except ValueError as exc:
                self._say(f"ERROR: {exc}")


def main(argv=None):
    """Load the rule file, commit it to the device and start the shell."""
    parser = argparse.ArgumentParser(description="Control the stateful firewall.")
    parser.add_argument("--rules", default=RULES_PATH, help="rule file to load")
    parser.add_argument("--device", default=DEVICE_PATH, help="control device path")
    args = parser.parse_args(argv)

    try:
        rules = read_rules(args.rules)
    except FileNotFoundError:
        rules = []
    sys.stdout.write(format_rules(rules))

    client = DeviceClient(path=args.device)
    try:
        count = client.commit_rules(rules)
        print(f"Commit {count} rules")
    except OSError:
        print("ERROR: open cdev")

    Shell(client, rules).run()
    return 0