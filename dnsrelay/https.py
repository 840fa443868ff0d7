"""DNS-over-HTTPS request parsing, client address detection and responses."""

from __future__ import annotations

import base64
import binascii
import ipaddress
import re
from http import HTTPStatus
from typing import Any, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs

import dns.exception
import dns.message

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
AddrPort = Tuple[IPAddress, int]

DNS_MESSAGE_CONTENT_TYPE = "application/dns-message"
"""The media type of DNS messages carried over HTTP."""

BASIC_AUTH_CHALLENGE = 'Basic realm="DNS", charset="UTF-8"'
"""The WWW-Authenticate value sent when basic authentication fails."""

_REAL_IP_HEADERS = ("CF-Connecting-IP", "True-Client-IP", "X-Real-IP")
_FORWARDED_FOR = "X-Forwarded-For"

_RAW_URL_B64 = re.compile(r"[A-Za-z0-9_-]*")
_PORT = re.compile(r"[0-9]+")


class DoHRequestError(ValueError):
    """A DoH request cannot be served; status is the HTTP status to answer."""

    def __init__(self, status: HTTPStatus, message: str | None = None) -> None:
        self.status = HTTPStatus(status)
        super().__init__(message if message is not None else self.status.phrase)


def _quote(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _parse_addr(s: str) -> IPAddress:
    try:
        return ipaddress.ip_address(s)
    except ValueError:
        raise ValueError(f"ParseAddr({_quote(s)}): unable to parse IP") from None


def _first(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else ""
    if value is None:
        return ""
    return str(value)


def _header(headers: Mapping[str, Any] | None, name: str) -> str:
    if not headers:
        return ""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return _first(value)
    return ""


def _query_param(query: str | Mapping[str, Any] | None, name: str) -> str:
    if query is None:
        return ""
    if isinstance(query, str):
        values = parse_qs(query, keep_blank_values=True).get(name)
        return values[0] if values else ""
    return _first(query.get(name))


def _decode_raw_url_b64(s: str) -> bytes:
    if not _RAW_URL_B64.fullmatch(s) or len(s) % 4 == 1:
        raise ValueError("illegal base64 data")
    return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))


def _read_body(body: Any) -> bytes:
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    try:
        return bytes(body.read())
    finally:
        close = getattr(body, "close", None)
        if close is not None:
            try:
                close()
            except OSError:
                pass


def parse_doh_request(
    method: str,
    query: str | Mapping[str, Any] | None = None,
    content_type: str | None = None,
    body: Any = None,
) -> dns.message.Message:
    """Parse the DNS request carried by a DoH HTTP request.

    GET requests carry it base64url-encoded, unpadded, in the "dns" query
    parameter; POST requests carry it in the body with the DNS message
    content type.  Raises DoHRequestError with status 400 for missing or
    malformed data, 415 for a wrong content type and 405 for other methods.
    """
    method = method.upper()
    if method == "GET":
        param = _query_param(query, "dns")
        try:
            buf = _decode_raw_url_b64(param)
        except (ValueError, binascii.Error):
            buf = b""
        if not buf:
            raise DoHRequestError(HTTPStatus.BAD_REQUEST)
    elif method == "POST":
        if (content_type or "") != DNS_MESSAGE_CONTENT_TYPE:
            raise DoHRequestError(HTTPStatus.UNSUPPORTED_MEDIA_TYPE)
        try:
            buf = _read_body(body)
        except OSError as err:
            raise DoHRequestError(
                HTTPStatus.BAD_REQUEST, f"reading http request body: {err}"
            ) from err
    else:
        raise DoHRequestError(HTTPStatus.METHOD_NOT_ALLOWED)

    try:
        return dns.message.from_wire(buf)
    except dns.exception.DNSException as err:
        raise DoHRequestError(
            HTTPStatus.BAD_REQUEST, f"unpacking http msg: {err}"
        ) from err


def real_ip_from_headers(headers: Mapping[str, Any] | None) -> IPAddress:
    """Return the client's address from the first suitable proxy header.

    The headers are tried in this order: CF-Connecting-IP, True-Client-IP,
    X-Real-IP and the first entry of X-Forwarded-For.  Raises ValueError if
    none holds an address.
    """
    for name in _REAL_IP_HEADERS:
        try:
            return _parse_addr(_header(headers, name).strip())
        except ValueError:
            continue

    xff = _header(headers, _FORWARDED_FOR)
    comma = xff.find(",")
    if comma > 0:
        xff = xff[:comma]

    return _parse_addr(xff.strip())


def _parse_addr_port(s: str) -> AddrPort:
    i = s.rfind(":")
    if i == -1:
        raise ValueError("not an ip:port")

    host, port = s[:i], s[i + 1 :]
    if not host:
        raise ValueError("no IP")
    if not port:
        raise ValueError("no port")

    v6 = False
    if host.startswith("["):
        if len(host) < 2 or not host.endswith("]"):
            raise ValueError("missing ]")
        host = host[1:-1]
        v6 = True

    if not _PORT.fullmatch(port) or int(port) > 0xFFFF:
        raise ValueError(f"invalid port {_quote(port)} parsing {_quote(s)}")

    ip = _parse_addr(host)
    if v6 and ip.version == 4:
        raise ValueError(
            f"invalid ip:port {_quote(s)}, square brackets can only be used "
            "with IPv6 addresses"
        )
    if not v6 and ip.version == 6:
        raise ValueError(
            f"invalid ip:port {_quote(s)}, IPv6 addresses must be surrounded "
            "by square brackets"
        )

    return ip, int(port)


def remote_addr(
    remote: str, headers: Mapping[str, Any] | None = None
) -> tuple[AddrPort, Optional[AddrPort]]:
    """Return the real client's address and that of the last proxy, if any.

    remote is the peer's "ip:port".  When the headers name the client, its
    address comes with port 0 and the peer is reported as the proxy.  Raises
    ValueError if remote is not a valid "ip:port".
    """
    host = _parse_addr_port(remote)

    try:
        real_ip = real_ip_from_headers(headers)
    except ValueError:
        return host, None

    return (real_ip, 0), host


def matches_userinfo(
    required_user: str,
    required_password: str | None,
    user: str,
    password: str,
) -> bool:
    """Report whether user and password match the required credentials."""
    return user == required_user and password == (required_password or "")


def pack_doh_response(
    msg: dns.message.Message | None, server_name: str | None = None
) -> tuple[dict[str, str], bytes]:
    """Return the headers and body of the HTTP answer carrying msg.

    Raises DoHRequestError with status 500 if there is no response or it
    cannot be packed.
    """
    if msg is None:
        raise DoHRequestError(HTTPStatus.INTERNAL_SERVER_ERROR)

    try:
        wire = msg.to_wire()
    except dns.exception.DNSException as err:
        raise DoHRequestError(
            HTTPStatus.INTERNAL_SERVER_ERROR, f"packing message: {err}"
        ) from err

    headers: dict[str, str] = {}
    if server_name:
        headers["Server"] = server_name
    headers["Content-Type"] = DNS_MESSAGE_CONTENT_TYPE

    return headers, wire