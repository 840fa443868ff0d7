"""Checks applied to incoming requests and to upstream responses."""

from __future__ import annotations

import ipaddress
from typing import Any, Callable, Iterable, Sequence, Union

import dns.message
import dns.name
import dns.rcode
import dns.rdatatype

from dnsrelay.recursion import RecursionDetector

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
SubnetSet = Union[Callable[[IPAddress], bool], Iterable[IPNetwork]]

_V4_SUFFIX = ".in-addr.arpa"
_V6_SUFFIX = ".ip6.arpa"

_ARPA_TYPES = frozenset(
    {dns.rdatatype.PTR, dns.rdatatype.SOA, dns.rdatatype.NS}
)


def _name_text(name: str | dns.name.Name) -> str:
    text = name.to_text() if isinstance(name, dns.name.Name) else str(name)
    if text.endswith("."):
        text = text[:-1]

    return text.lower()


def _reversed_v4(labels: list[str], name: str) -> ipaddress.IPv4Network:
    if not 1 <= len(labels) <= 4:
        raise ValueError(f"bad arpa domain name {name!r}: wrong number of labels")

    octets = []
    for label in reversed(labels):
        if not label.isdigit() or not label.isascii():
            raise ValueError(f"bad arpa domain name {name!r}: bad label {label!r}")
        if len(label) > 1 and label.startswith("0"):
            raise ValueError(f"bad arpa domain name {name!r}: leading zero in {label!r}")
        value = int(label)
        if value > 255:
            raise ValueError(f"bad arpa domain name {name!r}: octet {label!r} out of range")
        octets.append(value)

    prefix_len = len(octets) * 8
    octets.extend([0] * (4 - len(octets)))

    return ipaddress.IPv4Network((ipaddress.IPv4Address(bytes(octets)), prefix_len))


def _reversed_v6(labels: list[str], name: str) -> ipaddress.IPv6Network:
    if not 1 <= len(labels) <= 32:
        raise ValueError(f"bad arpa domain name {name!r}: wrong number of labels")

    nibbles = []
    for label in reversed(labels):
        if len(label) != 1 or label not in "0123456789abcdef":
            raise ValueError(f"bad arpa domain name {name!r}: bad nibble {label!r}")
        nibbles.append(label)

    prefix_len = len(nibbles) * 4
    value = int("".join(nibbles).ljust(32, "0"), 16)

    return ipaddress.IPv6Network((ipaddress.IPv6Address(value), prefix_len))


def extract_reversed_addr(name: str | dns.name.Name) -> IPNetwork:
    """Return the network a reverse-lookup ARPA domain name stands for.

    A name with fewer labels than a full address denotes a subnet.  Raises
    ValueError if name is not a valid in-addr.arpa or ip6.arpa name.
    """
    text = _name_text(name)
    if text.endswith(_V4_SUFFIX):
        return _reversed_v4(text[: -len(_V4_SUFFIX)].split("."), text)
    if text.endswith(_V6_SUFFIX):
        return _reversed_v6(text[: -len(_V6_SUFFIX)].split("."), text)

    raise ValueError(f"bad arpa domain name {text!r}: not a reversed ip network")


def _contains(private_nets: SubnetSet, addr: IPAddress) -> bool:
    if callable(private_nets):
        return bool(private_nets(addr))

    return any(addr in net for net in private_nets)


def is_forbidden_arpa(
    msg: dns.message.Message,
    private_nets: SubnetSet,
    is_private_client: bool,
) -> tuple[bool, IPNetwork | None]:
    """Check a PTR, SOA or NS request for a private address.

    Returns whether the request is forbidden, which it is when it asks about
    a private network and the client is not private, and the requested
    private network if there is one.
    """
    if not msg.question:
        return False, None

    q = msg.question[0]
    if q.rdtype not in _ARPA_TYPES:
        return False, None

    try:
        requested = extract_reversed_addr(q.name)
    except ValueError:
        return False, None

    if _contains(private_nets, requested.network_address):
        return not is_private_client, requested

    return False, None


def _reply(req: dns.message.Message, rcode: int) -> dns.message.Message:
    resp = dns.message.make_response(req)
    resp.set_rcode(rcode)

    return resp


def validate_request(
    msg: dns.message.Message,
    refuse_any: bool,
    detector: RecursionDetector | None,
    private_nets: SubnetSet,
    is_private_client: bool,
) -> tuple[dns.message.Message | None, IPNetwork | None]:
    """Check a request before it is resolved.

    Returns the response to send instead of resolving, or None if the request
    is fine, and the requested private network for reverse lookups, if any.
    """
    if len(msg.question) != 1:
        return _reply(msg, dns.rcode.SERVFAIL), None

    if refuse_any and msg.question[0].rdtype == dns.rdatatype.ANY:
        return _reply(msg, dns.rcode.NOTIMP), None

    if detector is not None and detector.check(msg):
        return _reply(msg, dns.rcode.NXDOMAIN), None

    forbidden, requested = is_forbidden_arpa(msg, private_nets, is_private_client)
    if forbidden:
        return _reply(msg, dns.rcode.NXDOMAIN), requested

    return None, requested


def respect_ttl_overrides(ttl: int, min_ttl: int, max_ttl: int) -> int:
    """Clamp ttl to min_ttl and, unless it is zero, to max_ttl."""
    if ttl < min_ttl:
        return min_ttl
    if max_ttl != 0 and ttl > max_ttl:
        return max_ttl

    return ttl


def set_min_max_ttl(msg: dns.message.Message, min_ttl: int, max_ttl: int) -> None:
    """Apply the TTL overrides to every answer record of msg."""
    for rrset in msg.answer:
        rrset.ttl = respect_ttl_overrides(rrset.ttl, min_ttl, max_ttl)


def fix_question(req: dns.message.Message, resp: dns.message.Message) -> None:
    """Give resp the request's question if the upstream left it out."""
    if req.question and not resp.question:
        resp.question = [req.question[0]]


def validate_basic_auth(userinfo: Any, https_addrs: Sequence[Any] | None) -> bool:
    """Check the basic-auth settings and report whether basic auth is enabled.

    Basic auth needs HTTPS listen addresses; raises ValueError without them.
    """
    if userinfo is None:
        return False

    if not https_addrs:
        raise ValueError("basic auth: no https addrs")

    return True