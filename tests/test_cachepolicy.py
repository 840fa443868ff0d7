import ipaddress

import pytest

from dnsrelay.cachepolicy import (
    cache_skip_reason,
    clone_network,
    subnet_for_cache,
)


def test_clone_network_none():
    assert clone_network(None) is None


@pytest.mark.parametrize("text", ["1.2.3.0/24", "102:304:506:700::/56"])
def test_clone_network_equal(text):
    original = ipaddress.ip_network(text)
    clone = clone_network(original)
    assert clone == original
    assert clone.prefixlen == original.prefixlen


def test_clone_network_from_string_masks():
    clone = clone_network("1.2.3.4/24")
    assert clone == ipaddress.ip_network("1.2.3.0/24")


def test_cache_works():
    assert cache_skip_reason(True, None, None, False, False) is None


def test_cache_works_with_custom_cache():
    assert cache_skip_reason(True, None, object(), True, False) is None


def test_cache_disabled_comes_first():
    private = ipaddress.ip_network("192.168.0.0/24")
    assert cache_skip_reason(False, private, object(), False, True) == "disabled"


def test_private_rdns():
    private = ipaddress.ip_network("192.168.0.0/24")
    reason = cache_skip_reason(True, private, None, False, True)
    assert reason == "requested address is private"


def test_custom_without_cache():
    reason = cache_skip_reason(True, None, object(), False, True)
    assert reason == "custom upstreams cache is not configured"


def test_checking_disabled():
    assert cache_skip_reason(True, None, None, False, True) == "dnssec check disabled"


def test_subnet_mismatch_is_not_cached():
    req = ipaddress.ip_network("1.2.3.0/24")
    resp = ipaddress.ip_network("2.2.3.0/24")
    assert subnet_for_cache(resp, 24, req) == (False, None)


def test_prefix_length_mismatch_is_not_cached():
    req = ipaddress.ip_network("1.2.3.0/24")
    resp = ipaddress.ip_network("1.2.0.0/16")
    assert subnet_for_cache(resp, 16, req) == (False, None)


def test_matching_subnet_kept():
    req = ipaddress.ip_network("1.2.3.0/24")
    resp = ipaddress.ip_network("1.2.3.0/24")
    ok, subnet = subnet_for_cache(resp, 24, req)
    assert ok is True
    assert subnet == resp


def test_narrow_scope_widens_subnet():
    req = ipaddress.ip_network("1.2.3.0/24")
    resp = ipaddress.ip_network("1.2.3.0/24")
    ok, subnet = subnet_for_cache(resp, 16, req)
    assert ok is True
    assert subnet.prefixlen == 16
    assert req.subnet_of(subnet)


def test_ipv6_scope():
    req = ipaddress.ip_network("102:304:506:700::/56")
    ok, subnet = subnet_for_cache(req, 48, req)
    assert ok is True
    assert subnet.prefixlen == 48
    assert req.subnet_of(subnet)


def test_server_without_ecs_caches_for_all_subnets():
    req = ipaddress.ip_network("1.2.3.0/24")
    ok, subnet = subnet_for_cache(None, 0, req)
    assert ok is True
    assert subnet.prefixlen == 0
    assert req.subnet_of(subnet)


def test_no_request_ecs_uses_general_cache():
    resp = ipaddress.ip_network("1.2.3.0/24")
    assert subnet_for_cache(resp, 24, None) == (True, None)
    assert subnet_for_cache(None, 0, None) == (True, None)