"""Decisions on whether and under which subnet a response is cached."""

from __future__ import annotations

import ipaddress
from typing import Any, Optional, Tuple, Union

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
NetworkLike = Union[IPNetwork, str]

REASON_DISABLED = "disabled"
REASON_PRIVATE = "requested address is private"
REASON_CUSTOM_NO_CACHE = "custom upstreams cache is not configured"
REASON_CHECKING_DISABLED = "dnssec check disabled"


def _network(value: NetworkLike) -> IPNetwork:
    if isinstance(value, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return value

    return ipaddress.ip_network(value, strict=False)


def clone_network(network: Optional[NetworkLike]) -> Optional[IPNetwork]:
    """Return an independent copy of network, or None if it is None."""
    if network is None:
        return None

    net = _network(network)

    return ipaddress.ip_network((net.network_address, net.prefixlen))


def cache_skip_reason(
    cache_enabled: bool,
    requested_private_rdns: Any,
    custom_config: Any,
    custom_cache_enabled: bool,
    checking_disabled: bool,
) -> Optional[str]:
    """Return why the cache must not be used for a request, or None if it may.

    The checks are made in order: the cache being off, a reverse lookup of a
    private address, a custom upstream configuration without its own cache,
    and the request having the CD flag set.
    """
    if not cache_enabled:
        return REASON_DISABLED
    if requested_private_rdns is not None:
        return REASON_PRIVATE
    if custom_config is not None and custom_config is not False and not custom_cache_enabled:
        return REASON_CUSTOM_NO_CACHE
    if checking_disabled:
        return REASON_CHECKING_DISABLED

    return None


def subnet_for_cache(
    resp_ecs: Optional[NetworkLike],
    scope: int,
    req_ecs: Optional[NetworkLike],
) -> Tuple[bool, Optional[IPNetwork]]:
    """Decide how a response is stored when EDNS Client Subnet is enabled.

    Returns whether the response may be cached and the subnet to store it
    under.  A subnet of None means the general cache.  A response whose ECS
    subnet differs from the request's is not cached.  A narrower SCOPE
    PREFIX-LENGTH widens the stored subnet to that scope.  When only the
    request carries ECS, the response is stored for the whole address family.
    """
    if resp_ecs is not None and req_ecs is not None:
        resp_net = _network(resp_ecs)
        req_net = _network(req_ecs)

        if (
            resp_net.version != req_net.version
            or resp_net.network_address != req_net.network_address
            or resp_net.prefixlen != req_net.prefixlen
        ):
            return False, None

        if scope < req_net.prefixlen:
            resp_net = ipaddress.ip_network(
                (resp_net.network_address, scope), strict=False
            )

        return True, resp_net

    if req_ecs is not None:
        req_net = _network(req_ecs)
        everything = ipaddress.ip_network(
            (req_net.network_address, 0), strict=False
        )
        return True, everything

    return True, None