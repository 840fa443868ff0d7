# dnsrelay

`dnsrelay` is a library of the pieces a DNS forwarding proxy is built from.
It works on `dns.message.Message` objects from dnspython and covers the
decisions made between receiving a query and handing it to an upstream
resolver:

* deciding which upstream mode to run in,
* per-subnet rate limiting with a whitelist of addresses,
* detecting queries that loop back through the proxy,
* checking incoming requests (question count, `ANY` refusal, private
  reverse lookups from public clients),
* applying minimum and maximum TTL overrides to answers,
* framing messages for DNS-over-TCP/TLS and DNS-over-HTTPS,
* working out the real client address behind HTTP reverse proxies,
* choosing whether, and under which subnet, a response may be cached.

## Installation

```
pip install dnsrelay
```

Python 3.10 or later is required.

## Modules

| Module | What it provides |
| --- | --- |
| `dnsrelay.upstreammode` | `UpstreamMode` and `parse_upstream_mode()` |
| `dnsrelay.ratelimit` | `RateLimiter` (at most `limit` events in any `interval` seconds) and `IPRateLimiter` (one limiter per client subnet, with a whitelist) |
| `dnsrelay.recursion` | `RecursionDetector` and `msg_to_signature()` |
| `dnsrelay.framing` | `add_prefix()`, `read_prefixed()`, `write_prefixed()`, `MessageTooLargeError` |
| `dnsrelay.protocol` | `Proto`, `add_do()`, `close_all()`, `unpack_udp_packet()`, `validate_dnscrypt_config()` |
| `dnsrelay.validation` | `validate_request()`, `is_forbidden_arpa()`, `extract_reversed_addr()`, `respect_ttl_overrides()`, `set_min_max_ttl()`, `fix_question()`, `validate_basic_auth()` |
| `dnsrelay.https` | `parse_doh_request()`, `pack_doh_response()`, `real_ip_from_headers()`, `remote_addr()`, `matches_userinfo()`, `DoHRequestError` |
| `dnsrelay.cachepolicy` | `cache_skip_reason()`, `subnet_for_cache()`, `clone_network()` |

## Examples

### Upstream mode

```python
from dnsrelay.upstreammode import parse_upstream_mode

mode = parse_upstream_mode("load_balance")
print(mode.marshal_text())  # b"load_balance"
```

Unknown names raise `ValueError` listing the supported modes
(`load_balance`, `parallel`, `fastest_addr`).

### Rate limiting

```python
from dnsrelay.ratelimit import IPRateLimiter

limiter = IPRateLimiter(ratelimit=1, subnet_len_ipv4=24, subnet_len_ipv6=64)
assert not limiter.is_ratelimited("192.0.2.1")
assert limiter.is_ratelimited("192.0.2.7")  # same /24, second request this second
```

A `ratelimit` of zero or less turns limiting off; whitelisted addresses are
never limited.

### Length-prefixed framing (TCP and TLS)

```python
import io

import dns.message

from dnsrelay.framing import read_prefixed, write_prefixed

query = dns.message.make_query("example.com.", "A")

buf = io.BytesIO()
write_prefixed(query.to_wire(), buf)
buf.seek(0)

wire = read_prefixed(buf)
assert dns.message.from_wire(wire).question == query.question
```

A message longer than 65535 bytes raises `MessageTooLargeError`; a stream
that ends early raises `EOFError`.

### Adding the DO bit

```python
import dns.message

from dnsrelay.protocol import add_do

query = dns.message.make_query("example.com.", "A")
add_do(query)  # adds an EDNS0 OPT record (payload 2048) with the DO flag set
```

### Recursion detection

```python
import dns.message

from dnsrelay.recursion import RecursionDetector

detector = RecursionDetector()
query = dns.message.make_query("1.0.168.192.in-addr.arpa.", "PTR")

detector.add(query)           # remember a query sent to a private upstream
assert detector.check(query)  # the same query coming back within a second is a loop
```

### Client address behind an HTTP proxy

`real_ip_from_headers()` looks at `CF-Connecting-IP`, `True-Client-IP`,
`X-Real-IP` and finally the first entry of `X-Forwarded-For`, in that order:

```python
from dnsrelay.https import real_ip_from_headers

ip = real_ip_from_headers({"X-Forwarded-For": "1.2.3.5, 1.2.3.4"})
print(ip)  # 1.2.3.5
```

## What the package does not do

`dnsrelay` is a library of decisions and encodings, not a running proxy:

* it opens no sockets and runs no UDP, TCP, TLS, HTTPS or QUIC server;
* it sends nothing to upstream resolvers and holds no response cache, it
  only decides whether and under which subnet a response may be cached;
* it has no DNS-over-QUIC support;
* for DNSCrypt it only checks the configuration with
  `validate_dnscrypt_config()`, it does no DNSCrypt encryption;
* it has no command-line program.

## Running the tests

Install the `test` extra and run `pytest` from the project directory:

```
pip install "dnsrelay[test]"
pytest
```