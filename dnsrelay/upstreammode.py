"""Upstream selection modes."""

from __future__ import annotations

from enum import Enum


class UpstreamMode(str, Enum):
    """How the proxy chooses between configured upstream servers."""

    LOAD_BALANCE = "load_balance"
    """Balance the load between upstreams.  This is the default."""

    PARALLEL = "parallel"
    """Query all configured upstreams in parallel."""

    FASTEST_ADDR = "fastest_addr"
    """Answer A and AAAA requests with the fastest detected address only."""

    def marshal_text(self) -> bytes:
        """Return the textual representation of the mode as bytes."""
        return self.value.encode()

    def __str__(self) -> str:
        return self.value


def parse_upstream_mode(text: str | bytes) -> UpstreamMode:
    """Parse an upstream mode from its textual representation.

    Raises ValueError for an unknown mode.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8", errors="replace")

    try:
        return UpstreamMode(text)
    except ValueError:
        supported = ", ".join(f'"{m.value}"' for m in UpstreamMode)
        raise ValueError(
            f'invalid upstream mode "{text}", supported: {supported}'
        ) from None