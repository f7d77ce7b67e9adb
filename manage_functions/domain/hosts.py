# /manage_functions/domain/hosts.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_address

from manage_functions.domain.errors import InvalidCidrOrRange, MalformedSpec

LOG = logging.getLogger("domain.hosts")

IPAddress = IPv4Address | IPv6Address
Bounds = tuple[int, int, int]  # (ip version, first, last) as integers

_SEPARATORS = re.compile(r"[,\n]")
_LABEL = re.compile(r"[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?")
_SHORT_V4_END = re.compile(r"[0-9]{1,3}")
_SHORT_V6_END = re.compile(r"[0-9A-Fa-f]{1,4}")
_MAX_HOSTNAME_LEN = 253


# ==== Tokens ====


@dataclass(frozen=True, slots=True)
class SingleAddress:
    address: IPAddress

    def bounds(self) -> Bounds:
        value = int(self.address)
        return self.address.version, value, value


@dataclass(frozen=True, slots=True)
class AddressRange:
    start: IPAddress
    end: IPAddress

    def bounds(self) -> Bounds:
        return self.start.version, int(self.start), int(self.end)


@dataclass(frozen=True, slots=True)
class CidrBlock:
    network: IPv4Network | IPv6Network
    prefix_length: int

    def bounds(self) -> Bounds:
        """Usable hosts of the block, as ``ipaddress`` ``hosts()`` yields them.

        IPv4 drops the network and broadcast addresses and IPv6 drops the
        subnet-router anycast address, except on /31, /32, /127 and /128.
        """
        net = self.network
        first, last = int(net.network_address), int(net.broadcast_address)
        if net.max_prefixlen - self.prefix_length >= 2:
            first += 1
            if net.version == 4:
                last -= 1
        return net.version, first, last


@dataclass(frozen=True, slots=True)
class Hostname:
    name: str  # lower-cased

    def bounds(self) -> None:
        return None


HostToken = SingleAddress | AddressRange | CidrBlock | Hostname


@dataclass(frozen=True, slots=True)
class HostSpecification:
    tokens: tuple[HostToken, ...] = ()

    def __iter__(self):
        return iter(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)


EMPTY_SPEC = HostSpecification()


# ==== Parsing ====


def parse_hosts(text: str | None) -> HostSpecification:
    """Parse a comma separated host specification.

    Newlines count as commas, surrounding whitespace is trimmed and empty
    tokens are skipped. The first bad token raises ``MalformedSpec`` (or its
    subclass ``InvalidCidrOrRange`` for inconsistent bounds).
    """
    if not text:
        return EMPTY_SPEC
    tokens: list[HostToken] = []
    for raw in _SEPARATORS.split(text):
        token = raw.strip()
        if token:
            tokens.append(_parse_token(token))
    LOG.debug("hosts.parsed", extra={"extra": {"tokens": len(tokens)}})
    return HostSpecification(tuple(tokens))


def parse_candidate(text: str) -> IPAddress | str | None:
    """Return the candidate as an address, a lower-cased hostname, or None."""
    text = text.strip()
    address = _as_address(text)
    if address is not None:
        return address
    if _is_hostname(text):
        return text.lower()
    return None


def _parse_token(token: str) -> HostToken:
    if "/" in token:
        return _parse_cidr(token)

    address = _as_address(token)
    if address is not None:
        return SingleAddress(address)

    if "-" in token:
        head, _, tail = token.partition("-")
        start = _as_address(head.strip())
        if start is not None:
            return _parse_range(token, start, tail.strip())

    if not _is_hostname(token):
        raise MalformedSpec(f"invalid host: {token!r}")
    return Hostname(token.lower())


def _parse_cidr(token: str) -> CidrBlock:
    addr_text, _, prefix_text = token.partition("/")
    address = _as_address(addr_text.strip())
    prefix_text = prefix_text.strip()
    if address is None or not (prefix_text.isascii() and prefix_text.isdigit()):
        raise MalformedSpec(f"invalid CIDR block: {token!r}")

    prefix = int(prefix_text)
    if prefix > address.max_prefixlen:
        raise InvalidCidrOrRange(
            f"prefix length {prefix} out of range for IPv{address.version}: {token!r}"
        )
    network_cls = IPv4Network if address.version == 4 else IPv6Network
    return CidrBlock(network_cls((int(address), prefix), strict=False), prefix)


def _parse_range(token: str, start: IPAddress, tail: str) -> AddressRange:
    end = _as_address(tail)
    if end is None:
        end = _short_range_end(token, start, tail)
    if end is None:
        raise MalformedSpec(f"invalid address range: {token!r}")
    if end.version != start.version:
        raise InvalidCidrOrRange(f"address range mixes IPv4 and IPv6: {token!r}")
    if int(start) > int(end):
        raise InvalidCidrOrRange(f"range start is after range end: {token!r}")
    return AddressRange(start, end)


def _short_range_end(token: str, start: IPAddress, tail: str) -> IPAddress | None:
    # "192.168.1.1-20" and "fe80::1-ff" replace the last octet / group
    if start.version == 4:
        if not _SHORT_V4_END.fullmatch(tail):
            return None
        last = int(tail)
        if last > 255:
            raise InvalidCidrOrRange(f"range end octet out of range: {token!r}")
        return IPv4Address((int(start) & ~0xFF) | last)
    if not _SHORT_V6_END.fullmatch(tail):
        return None
    return IPv6Address((int(start) & ~0xFFFF) | int(tail, 16))


def _as_address(text: str) -> IPAddress | None:
    try:
        return ip_address(text)
    except ValueError:
        return None


def _is_hostname(text: str) -> bool:
    if not text or len(text) > _MAX_HOSTNAME_LEN:
        return False
    labels = text.split(".")
    if not all(_LABEL.fullmatch(label) for label in labels):
        return False
    # dotted numbers are broken addresses, not names
    return not all(label.isdigit() for label in labels)
