"""Conversions between dotted IPv4 text and the integer forms used in rules."""

_FULL_MASK = 0xFFFFFFFF


def parse_ip(text):
    """Parse a dotted quad such as ``"10.0.0.1"`` into a host-order integer."""
    parts = text.strip().split(".")
    if len(parts) != 4:
        raise ValueError(f"invalid IPv4 address: {text!r}")
    value = 0
    for part in parts:
        try:
            octet = int(part)
        except ValueError:
            raise ValueError(f"invalid IPv4 address: {text!r}") from None
        if not 0 <= octet <= 255:
            raise ValueError(f"invalid IPv4 address: {text!r}")
        value = (value << 8) | octet
    return value


def parse_ip_net(text):
    """Parse ``"a.b.c.d/len"`` into an ``(ip, mask)`` pair of integers."""
    address, sep, length_text = text.strip().partition("/")
    if not sep:
        raise ValueError(f"missing prefix length in {text!r}")
    try:
        length = int(length_text)
    except ValueError:
        raise ValueError(f"invalid prefix length in {text!r}") from None
    if not 0 <= length <= 32:
        raise ValueError(f"prefix length out of range in {text!r}")
    mask = ((1 << length) - 1) << (32 - length)
    return parse_ip(address), mask


def mask_length(mask):
    """Return the prefix length of a mask: 32 minus its trailing zero bits."""
    mask &= _FULL_MASK
    if mask == 0:
        return 0
    trailing_zeros = (mask & -mask).bit_length() - 1
    return 32 - trailing_zeros


def format_ip(ip):
    """Format a host-order integer as a dotted quad."""
    ip &= _FULL_MASK
    return ".".join(str((ip >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def format_ip_net(ip, mask):
    """Format an address and mask as ``"a.b.c.d/len"``."""
    return f"{format_ip(ip)}/{mask_length(mask)}"