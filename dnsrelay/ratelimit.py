"""Per-client request rate limiting."""

from __future__ import annotations

import ipaddress
import threading
import time
from collections import deque
from typing import Callable, Iterable, Union

Address = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]

# How long an unused per-subnet limiter is kept.
_BUCKET_TTL = 3600.0


class RateLimiter:
    """Allows at most ``limit`` events within any ``interval`` seconds."""

    def __init__(
        self,
        limit: int,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.interval = interval
        self._clock = clock
        self._times: deque[float] = deque()
        self._lock = threading.Lock()

    def try_acquire(self) -> tuple[bool, float]:
        """Try to register an event.

        Returns whether it is allowed and, if not, how many seconds remain
        until the next one would be.
        """
        with self._lock:
            now = self._clock()
            if len(self._times) < self.limit:
                self._times.append(now)
                return True, 0.0

            if not self._times:
                return False, self.interval

            diff = now - self._times[0]
            if diff < self.interval:
                return False, self.interval - diff

            self._times.popleft()
            self._times.append(now)
            return True, 0.0


def _to_addr(addr: Address) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    if isinstance(addr, str):
        return ipaddress.ip_address(addr)
    return addr


def _unmap(
    addr: ipaddress.IPv4Address | ipaddress.IPv6Address,
) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


class IPRateLimiter:
    """Rate limits clients grouped by subnet, with a whitelist of addresses."""

    def __init__(
        self,
        ratelimit: int,
        whitelist: Iterable[Address] = (),
        subnet_len_ipv4: int = 0,
        subnet_len_ipv6: int = 0,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ratelimit = ratelimit
        self.whitelist = frozenset(_to_addr(a) for a in whitelist)
        self.subnet_len_ipv4 = subnet_len_ipv4
        self.subnet_len_ipv6 = subnet_len_ipv6
        self.interval = interval
        self._clock = clock
        self._buckets: dict[str, tuple[RateLimiter, float]] = {}
        self._next_sweep = clock() + _BUCKET_TTL
        self._lock = threading.Lock()

    def _limiter_for(self, key: str) -> RateLimiter:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._buckets = {
                    k: v for k, v in self._buckets.items() if v[1] > now
                }
                self._next_sweep = now + _BUCKET_TTL

            entry = self._buckets.get(key)
            if entry is None or entry[1] <= now:
                limiter = RateLimiter(self.ratelimit, self.interval, self._clock)
                self._buckets[key] = (limiter, now + _BUCKET_TTL)
                return limiter

            return entry[0]

    def is_ratelimited(self, addr: Address) -> bool:
        """Report whether a request from addr must be rejected."""
        if self.ratelimit <= 0:
            return False

        ip = _unmap(_to_addr(addr))
        if ip in self.whitelist:
            return False

        prefix_len = self.subnet_len_ipv4 if ip.version == 4 else self.subnet_len_ipv6
        network = ipaddress.ip_network(f"{ip}/{prefix_len}", strict=False)
        allowed, _ = self._limiter_for(str(network.network_address)).try_acquire()

        return not allowed