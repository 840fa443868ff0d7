"""Building blocks for a DNS forwarding proxy: validation, rate limiting, framing and cache policy."""

__version__ = "0.1.0"