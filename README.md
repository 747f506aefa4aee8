# statefw

`statefw` is a model of a small stateful firewall. It keeps three things:

- an ordered **rule table** of at most 200 rules. The first rule that matches a packet decides whether the packet is accepted or dropped. When no rule matches, the firewall's default action applies, and the default is drop.
- a **connection table** keyed by a CRC-16 hash of the packet's addresses, ports and protocol. Each entry starts with 60 ticks to live, goes back to 60 whenever matching traffic is seen, and is removed when `Firewall.tick()` counts it down to zero.
- a **log ring** of the last 1000 decisions made by rules that have logging turned on.

How packets are filtered:

- **TCP.** A segment with SYN set and ACK clear is checked against the rules. Any other segment passes only if its connection is already tracked, in either direction.
- **UDP and ICMP.** A packet that belongs to a tracked flow, in either direction, passes. Otherwise the rules decide. For ICMP the ports are taken as 0.
- **Other protocols.** These are looked up and tracked as UDP, and they are never logged.

A packet that the rules accept starts a tracked flow. The packet hook in `FirewallDevice` always accepts traffic to or from 127.0.0.1. It also accepts everything while filtering is turned off.

## Installation

```
pip install .
```

To install the test dependencies and run the test suite:

```
pip install ".[test]"
pytest
```

## The control shell

```
statefw [--rules PATH] [--device PATH]
```

The shell starts in four steps:

1. It reads rules from `--rules`, which defaults to `data/rule.txt`. If that file does not exist, it starts with no rules.
2. It prints the rule table.
3. It commits the rules by writing them to the device file given by `--device`, which defaults to `/dev/chardev_test`. If that file cannot be opened, it prints `ERROR: open cdev`.
4. It reads commands from standard input, one per line:

| Command | Effect |
|---|---|
| `open` / `firewall open` | send the command that turns filtering on |
| `close` / `firewall close` | send the command that turns filtering off |
| `accept` / `default accept` | send the command that makes the default action accept |
| `drop` / `default drop` | send the command that makes the default action drop |
| `add` / `add rule` | read a rule, then a position, and insert the rule there |
| `remove` / `remove rule` | read a position and delete the rule there |
| `modify` / `modify rule` | read a position, then a rule, and replace the rule there |
| `rule` / `ls rule` | print the rule table |
| `commit` / `commit rule` | send the rule table to the device |
| `log` | fetch and print the packet log |
| `connect` | fetch and print the tracked connections |
| `exit` | leave the shell (end of input does the same) |

Edits made with `add`, `remove` and `modify` change only the shell's own table. Use `commit` to send the table to the device. The shell never writes the rule file back. To save rules, call `statefw.client.write_rules(path, rules)`.

## Rule format

A rule file holds one rule per line, with seven fields separated by whitespace. Blank lines are skipped.

```
<src-ip>/<len> <dst-ip>/<len> <src-port> <dst-port> <protocol> <action> <log>
```

For example:

```
192.168.60.1/32 192.168.60.200/25 0 7777 6 0 1
```

The fields follow these conventions:

- A port or protocol of `0` matches anything.
- The protocol numbers are 6 (TCP), 17 (UDP) and 1 (ICMP).
- `action` is `1` to accept and `0` to drop.
- `log` is `1` to record packets that match the rule and `0` not to.

A malformed field raises `ValueError`.

## Using the library

```python
from statefw.engine import Firewall
from statefw.models import Packet, Rule

fw = Firewall()
fw.set_rules([Rule.parse("10.0.0.0/8 0.0.0.0/0 0 80 6 1 1")])

syn = Packet(src_ip=0x0A000001, dst_ip=0x0A000002, src_port=40000, dst_port=80, protocol=6)
print(fw.handle_packet(syn, syn=True, ack=False))  # True
print(fw.connections())  # one ConnectionRecord with timeout 60
print(fw.logs())         # one LogEntry
fw.tick()                # timeouts drop to 59
```

The shell can also run against an in-memory device instead of a device file:

```python
from statefw.client import DeviceClient, Shell
from statefw.device import FirewallDevice

device = FirewallDevice()
client = DeviceClient(device=device)
Shell(client).run()
```

The package is made up of these modules:

- `statefw.addresses` converts between text and integer addresses: `parse_ip`, `parse_ip_net`, `format_ip`, `format_ip_net` and `mask_length`.
- `statefw.models` defines the records `Packet`, `Rule`, `LogEntry` and `ConnectionRecord`, with their fixed binary layouts (`to_bytes` / `from_bytes`). It also defines the `Operation` and `Protocol` enums.
- `statefw.engine` provides `Firewall`, which matches rules, tracks connections and keeps the log. It also provides `crc16` and `packet_hash`.
- `statefw.device` provides `FirewallDevice`, a byte-level interface in front of a `Firewall`.
  - `write()` takes a command byte, followed by packed rules for `WRITE_RULE`.
  - `read()` returns a count byte followed by packed records.
  - `hook_local_out()` returns a `Verdict` for one packet.
- `statefw.client` provides the following:
  - `read_rules` and `write_rules` for rule files;
  - `format_rules`, `format_connections` and `format_logs` for printing tables;
  - `DeviceClient`, which talks to a `FirewallDevice` or to a device file;
  - the interactive `Shell` and the `main` entry point.

## What this package does not do

`statefw` does not capture or filter real network traffic. Packets reach the engine only when you pass `Packet` objects to `Firewall.handle_packet` or `FirewallDevice.hook_local_out`. Connections also age only when you call `Firewall.tick()`; nothing calls it on a timer.

The package does not create `/dev/chardev_test` or any other device file. When the shell runs against a path, the device commands work only if something at that path answers with the same byte layout.