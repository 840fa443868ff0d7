"""Transport protocols and helpers shared by the proxy's listeners."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Protocol, Sequence

import dns.exception
import dns.flags
import dns.message

DEFAULT_UDP_BUF_SIZE = 2048
"""UDP payload size advertised in an EDNS0 record added by the proxy."""

DEFAULT_TIMEOUT = 10.0
"""Seconds a connection may take to read or write one message."""


class Proto(str, Enum):
    """A DNS transport protocol."""

    UDP = "udp"
    """Plain DNS over UDP."""

    TCP = "tcp"
    """Plain DNS over TCP."""

    TLS = "tls"
    """DNS over TLS (DoT)."""

    HTTPS = "https"
    """DNS over HTTPS (DoH)."""

    QUIC = "quic"
    """DNS over QUIC (DoQ)."""

    DNSCRYPT = "dnscrypt"
    """DNSCrypt."""

    def __str__(self) -> str:
        return self.value


class Closer(Protocol):
    """Anything that can be closed."""

    def close(self) -> Any:
        ...


def add_do(msg: dns.message.Message) -> None:
    """Set the DNSSEC OK bit of msg, adding an EDNS0 record if it has none."""
    if msg.edns >= 0:
        if not msg.ednsflags & dns.flags.DO:
            msg.ednsflags |= dns.flags.DO
        return

    msg.use_edns(edns=0, ednsflags=dns.flags.DO, payload=DEFAULT_UDP_BUF_SIZE)


def close_all(closers: Iterable[Closer]) -> list[Exception]:
    """Close every closer and return the errors that occurred, in order.

    A failing closer does not stop the others from being closed.
    """
    errors: list[Exception] = []
    for closer in closers:
        try:
            closer.close()
        except Exception as err:  # noqa: BLE001 - every failure is collected
            errors.append(err)

    return errors


def unpack_udp_packet(packet: bytes) -> dns.message.Message:
    """Parse a DNS message received in a UDP datagram.

    Raises ValueError if the packet is not a valid DNS message.
    """
    try:
        return dns.message.from_wire(bytes(packet))
    except dns.exception.DNSException as err:
        raise ValueError(f"unpacking udp packet: {err}") from err


def validate_dnscrypt_config(
    udp_addrs: Sequence[Any] | None,
    tcp_addrs: Sequence[Any] | None,
    cert: Any,
    provider_name: str | None,
) -> bool:
    """Check the DNSCrypt settings and report whether DNSCrypt is enabled.

    DNSCrypt is enabled when any listen address is given; it then needs both
    a resolver certificate and a provider name, or ValueError is raised.
    """
    if not udp_addrs and not tcp_addrs:
        return False

    if cert is None or not provider_name:
        raise ValueError(
            "invalid dnscrypt configuration: no certificate or provider name"
        )

    return True