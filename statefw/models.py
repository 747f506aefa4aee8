"""Records exchanged between the control client and the filtering engine."""

import datetime
import enum
import struct
from dataclasses import dataclass
from typing import ClassVar

from .addresses import format_ip_net, parse_ip_net

RULE_MAX = 200
LOG_MAX = 1000
BUFFER_SIZE = 20480
HASH_SIZE = 65536
CONNECT_TIME = 60
DEVICE_NAME = "chardev_test"


class Operation(enum.IntEnum):
    """Command bytes understood by the control device."""

    WRITE_RULE = 0
    GET_CONNECT = 1
    GET_LOG = 2
    GET_NAT = 3
    FW_OPEN = 6
    FW_CLOSE = 7
    DEFAULT_ACCEPT = 8
    DEFAULT_DROP = 9


class Protocol(enum.IntEnum):
    """IP protocol numbers; ``ANY`` matches every protocol in a rule."""

    ANY = 0
    ICMP = 1
    TCP = 6
    UDP = 17


def _check_range(name, value, limit):
    if not 0 <= value <= limit:
        raise ValueError(f"{name} out of range: {value}")


def _check_ip(name, value):
    _check_range(name, value, 0xFFFFFFFF)


def _check_port(name, value):
    _check_range(name, value, 0xFFFF)


def _check_size(cls, data):
    if len(data) != cls.SIZE:
        raise ValueError(f"{cls.__name__} needs {cls.SIZE} bytes, got {len(data)}")


def _parse_int(name, text, limit):
    try:
        value = int(text)
    except ValueError:
        raise ValueError(f"invalid {name}: {text!r}") from None
    _check_range(name, value, limit)
    return value


@dataclass(frozen=True)
class Packet:
    """The addressing fields of one IP packet."""

    src_ip: int
    dst_ip: int
    src_port: int = 0
    dst_port: int = 0
    protocol: int = Protocol.ANY

    _KEY: ClassVar[struct.Struct] = struct.Struct("<IIHHB")

    def __post_init__(self):
        _check_ip("src_ip", self.src_ip)
        _check_ip("dst_ip", self.dst_ip)
        _check_port("src_port", self.src_port)
        _check_port("dst_port", self.dst_port)
        _check_range("protocol", self.protocol, 0xFF)

    def reversed(self):
        """Return the packet travelling in the opposite direction."""
        return Packet(self.dst_ip, self.src_ip, self.dst_port, self.src_port, self.protocol)

    def key_bytes(self):
        """The 13 bytes that identify this flow for hashing."""
        return self._KEY.pack(
            self.src_ip, self.dst_ip, self.src_port, self.dst_port, self.protocol
        )


@dataclass(frozen=True)
class Rule:
    """A filtering rule; zero ports and protocol act as wildcards."""

    src_ip: int = 0
    src_mask: int = 0
    dst_ip: int = 0
    dst_mask: int = 0
    src_port: int = 0
    dst_port: int = 0
    protocol: int = Protocol.ANY
    action: bool = False
    log: bool = False

    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<IIIIHHB??x")
    SIZE: ClassVar[int] = _LAYOUT.size

    def __post_init__(self):
        _check_ip("src_ip", self.src_ip)
        _check_ip("src_mask", self.src_mask)
        _check_ip("dst_ip", self.dst_ip)
        _check_ip("dst_mask", self.dst_mask)
        _check_port("src_port", self.src_port)
        _check_port("dst_port", self.dst_port)
        _check_range("protocol", self.protocol, 0xFF)

    def to_bytes(self):
        """Encode the rule in the device's binary layout."""
        return self._LAYOUT.pack(
            self.src_ip,
            self.src_mask,
            self.dst_ip,
            self.dst_mask,
            self.src_port,
            self.dst_port,
            self.protocol,
            bool(self.action),
            bool(self.log),
        )

    @classmethod
    def from_bytes(cls, data):
        """Decode one rule from exactly ``SIZE`` bytes."""
        _check_size(cls, data)
        return cls(*cls._LAYOUT.unpack(data))

    @classmethod
    def parse(cls, line):
        """Parse ``"src/len dst/len sport dport proto action log"``."""
        fields = line.split()
        if len(fields) < 7:
            raise ValueError(f"rule needs 7 fields: {line!r}")
        src_ip, src_mask = parse_ip_net(fields[0])
        dst_ip, dst_mask = parse_ip_net(fields[1])
        return cls(
            src_ip=src_ip,
            src_mask=src_mask,
            dst_ip=dst_ip,
            dst_mask=dst_mask,
            src_port=_parse_int("source port", fields[2], 0xFFFF),
            dst_port=_parse_int("destination port", fields[3], 0xFFFF),
            protocol=_parse_int("protocol", fields[4], 0xFF),
            action=bool(_parse_int("action", fields[5], 1)),
            log=bool(_parse_int("log flag", fields[6], 1)),
        )

    def to_text(self):
        """Render the rule in the same form that ``parse`` reads."""
        return " ".join(
            [
                format_ip_net(self.src_ip, self.src_mask),
                format_ip_net(self.dst_ip, self.dst_mask),
                str(self.src_port),
                str(self.dst_port),
                str(int(self.protocol)),
                str(int(bool(self.action))),
                str(int(bool(self.log))),
            ]
        )


@dataclass(frozen=True)
class LogEntry:
    """One logged filtering decision."""

    when: datetime.datetime
    src_ip: int
    dst_ip: int
    src_port: int
    dst_port: int
    protocol: int
    action: bool

    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<6iIIHHB?2x")
    SIZE: ClassVar[int] = _LAYOUT.size

    def __post_init__(self):
        _check_ip("src_ip", self.src_ip)
        _check_ip("dst_ip", self.dst_ip)
        _check_port("src_port", self.src_port)
        _check_port("dst_port", self.dst_port)
        _check_range("protocol", self.protocol, 0xFF)

    def to_bytes(self):
        """Encode the entry with broken-down time fields first."""
        when = self.when
        return self._LAYOUT.pack(
            when.second,
            when.minute,
            when.hour,
            when.day,
            when.month - 1,
            when.year - 1900,
            self.src_ip,
            self.dst_ip,
            self.src_port,
            self.dst_port,
            self.protocol,
            bool(self.action),
        )

    @classmethod
    def from_bytes(cls, data):
        """Decode one entry from exactly ``SIZE`` bytes."""
        _check_size(cls, data)
        (sec, minute, hour, mday, mon, year,
         src_ip, dst_ip, src_port, dst_port, protocol, action) = cls._LAYOUT.unpack(data)
        when = datetime.datetime(year + 1900, mon + 1, mday, hour, minute, sec)
        return cls(when, src_ip, dst_ip, src_port, dst_port, protocol, action)


@dataclass(frozen=True)
class ConnectionRecord:
    """A tracked connection with the seconds it has left to live."""

    src_ip: int
    dst_ip: int
    src_port: int
    dst_port: int
    protocol: int
    timeout: int

    _LAYOUT: ClassVar[struct.Struct] = struct.Struct("<IIHHB3xi")
    SIZE: ClassVar[int] = _LAYOUT.size

    def __post_init__(self):
        _check_ip("src_ip", self.src_ip)
        _check_ip("dst_ip", self.dst_ip)
        _check_port("src_port", self.src_port)
        _check_port("dst_port", self.dst_port)
        _check_range("protocol", self.protocol, 0xFF)

    def to_bytes(self):
        """Encode the record as the device reports it."""
        return self._LAYOUT.pack(
            self.src_ip,
            self.dst_ip,
            self.src_port,
            self.dst_port,
            self.protocol,
            self.timeout,
        )

    @classmethod
    def from_bytes(cls, data):
        """Decode one record from exactly ``SIZE`` bytes."""
        _check_size(cls, data)
        return cls(*cls._LAYOUT.unpack(data))