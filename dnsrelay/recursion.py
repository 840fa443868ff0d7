"""Detection of requests that loop back to the proxy."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable

import dns.message

# Maximum length of a domain name in its textual form.
MAX_DOMAIN_NAME_LEN = 253

_UINT16_SIZE = 2

RECURSION_TTL = 1.0
"""Seconds a forwarded request is remembered."""

CACHED_RECURRENT_REQ_NUM = 1000
"""Maximum number of remembered requests."""


def msg_to_signature(msg: dns.message.Message) -> bytes:
    """Return the fixed-size signature of msg's ID and first question.

    Raises ValueError if msg has no question.
    """
    if not msg.question:
        raise ValueError("message has no question")

    q = msg.question[0]
    size = _UINT16_SIZE * 2 + MAX_DOMAIN_NAME_LEN
    head = msg.id.to_bytes(2, "big") + int(q.rdtype).to_bytes(2, "big")
    name = q.name.to_text().encode()

    return (head + name)[:size].ljust(size, b"\x00")


class RecursionDetector:
    """Remembers recently forwarded requests to spot them coming back."""

    def __init__(
        self,
        ttl: float = RECURSION_TTL,
        max_count: int = CACHED_RECURRENT_REQ_NUM,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_count = max_count
        self._clock = clock
        self._recent: OrderedDict[bytes, float] = OrderedDict()
        self._lock = threading.Lock()

    def add(self, msg: dns.message.Message) -> None:
        """Remember msg if it has a question."""
        if not msg.question:
            return

        expire = self._clock() + self.ttl
        key = msg_to_signature(msg)
        with self._lock:
            self._recent[key] = expire
            self._recent.move_to_end(key)
            while len(self._recent) > self.max_count:
                self._recent.popitem(last=False)

    def check(self, msg: dns.message.Message) -> bool:
        """Report whether msg was sent by the proxy recently."""
        if not msg.question:
            return False

        key = msg_to_signature(msg)
        with self._lock:
            expire = self._recent.get(key)
            if expire is None:
                return False
            self._recent.move_to_end(key)

        return self._clock() < expire

    def clear(self) -> None:
        """Forget all remembered requests."""
        with self._lock:
            self._recent.clear()