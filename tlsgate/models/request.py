"""Per-request data model for tlsgate.

RequestSecurity is the outcome of evaluation (what the channel *should* be).
EvaluationContext is the immutable, framework-free view of one inbound request
that every pipeline stage works from. It is built once from the ASGI scope by
``EvaluationContext.from_scope()`` and discarded when the request ends.

The path held here is the externally visible one: ``raw_path`` from the scope,
with percent-encoding intact. Comparing or rebuilding URLs from the decoded
``path`` would alter query/path bytes and can produce redirect loops.
"""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from tlsgate.constants import (
    DEFAULT_PORTS,
    HTTP_SCHEME,
    HTTPS_SCHEME,
    LOOPBACK_HOST_NAMES,
    REQUESTED_WITH_HEADER,
    XML_HTTP_REQUEST,
)


class RequestSecurity(str, enum.Enum):
    """Expected security state of a request."""

    SECURE = "secure"
    INSECURE = "insecure"
    IGNORE = "ignore"


class MissingRequestContextError(ValueError):
    """Raised when the scope lacks what is needed to evaluate the request."""


@dataclass(frozen=True)
class EvaluationContext:
    """Read-only description of one inbound request.

    Fields:
        method:        HTTP method, upper-case.
        scheme:        Externally visible scheme ("https" when the request is
                       secure, including TLS offloaded upstream).
        host:          Host name without port (IPv6 literals keep brackets).
        port:          Explicit port from the Host header / server, or None.
        original_path: Raw request path as the client sent it.
        query_string:  Raw query string without the leading "?".
        headers:       Lower-case header name → value.
        client_host:   Client address, if the server reported one.
        is_local:      Client address is a loopback address.
        is_secure:     Request arrived over TLS (directly or offloaded).
    """

    method: str
    scheme: str
    host: str
    port: Optional[int]
    original_path: str
    query_string: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    client_host: Optional[str] = None
    is_local: bool = False
    is_secure: bool = False

    @property
    def path_and_query(self) -> str:
        if self.query_string:
            return f"{self.original_path}?{self.query_string}"
        return self.original_path

    @property
    def url(self) -> str:
        """The current request URL as the client sees it."""
        return build_url(self.scheme, self.host, self.port, self.path_and_query)

    @property
    def is_ajax(self) -> bool:
        return self.headers.get(REQUESTED_WITH_HEADER, "").lower() == XML_HTTP_REQUEST

    @classmethod
    def from_scope(
        cls,
        scope: Mapping[str, Any],
        offloaded_headers: Iterable[tuple[str, Optional[str]]] = (),
    ) -> "EvaluationContext":
        """Build a context from an ASGI HTTP scope.

        Args:
            scope:             ASGI connection scope.
            offloaded_headers: (header, expected value) pairs that mark the
                               request as secure when TLS ends upstream. A
                               value of None means "header present".

        Raises:
            MissingRequestContextError: No host can be determined, or the
                                        scope is not an HTTP scope.
        """
        if scope.get("type") != "http":
            raise MissingRequestContextError(f"unsupported scope type: {scope.get('type')!r}")

        headers = {
            name.decode("latin-1").lower(): value.decode("latin-1")
            for name, value in scope.get("headers", [])
        }

        host, port = _host_and_port(headers.get("host"), scope.get("server"))
        if not host:
            raise MissingRequestContextError("request has no Host header and no server address")

        is_secure = scope.get("scheme") in (HTTPS_SCHEME, "wss") or _offloaded_secure(
            headers, offloaded_headers
        )

        client = scope.get("client")
        client_host = client[0] if client else None

        return cls(
            method=str(scope.get("method", "GET")).upper(),
            scheme=HTTPS_SCHEME if is_secure else HTTP_SCHEME,
            host=host,
            port=port,
            original_path=_original_path(scope),
            query_string=scope.get("query_string", b"").decode("latin-1"),
            headers=headers,
            client_host=client_host,
            is_local=is_loopback(client_host),
            is_secure=is_secure,
        )


def build_url(scheme: str, host: str, port: Optional[int], path_and_query: str) -> str:
    """Assemble an absolute URL, leaving out the scheme's default port."""
    netloc = host
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    return f"{scheme}://{netloc}{path_and_query}"


def is_loopback(client_host: Optional[str]) -> bool:
    """True when the client address refers to the local machine.

    Covers all of 127.0.0.0/8, ::1, IPv4-mapped loopback (::ffff:127.x.x.x)
    and the ``localhost`` name. Anything unparseable is remote.
    """
    if not client_host:
        return False
    if client_host.lower() in LOOPBACK_HOST_NAMES:
        return True
    try:
        address = ipaddress.ip_address(client_host.strip("[]").split("%", 1)[0])
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped.is_loopback
    return address.is_loopback


# ─── Scope helpers ────────────────────────────────────────────────────────────


def _original_path(scope: Mapping[str, Any]) -> str:
    raw_path = scope.get("raw_path")
    if raw_path:
        # Some servers leave the query attached to raw_path.
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return scope.get("root_path", "") + scope.get("path", "/")


def _host_and_port(
    host_header: Optional[str],
    server: Optional[tuple],
) -> tuple[str, Optional[int]]:
    if host_header:
        return _split_host_header(host_header.strip())
    if server:
        server_host, server_port = server[0], server[1]
        if server_host and ":" in server_host:
            server_host = f"[{server_host}]"
        return server_host or "", server_port
    return "", None


def _split_host_header(value: str) -> tuple[str, Optional[int]]:
    # IPv6 literal: "[::1]:8080" or "[::1]"
    if value.startswith("["):
        end = value.find("]")
        if end == -1:
            return value, None
        host, rest = value[: end + 1], value[end + 1:]
        port_text = rest[1:] if rest.startswith(":") else ""
    else:
        host, _, port_text = value.partition(":")

    if port_text.isdigit():
        return host.lower(), int(port_text)
    return host.lower(), None


def _offloaded_secure(
    headers: Mapping[str, str],
    offloaded_headers: Iterable[tuple[str, Optional[str]]],
) -> bool:
    for name, expected in offloaded_headers:
        actual = headers.get(name.lower())
        if actual is None:
            continue
        if expected is None or actual.strip().lower() == expected.lower():
            return True
    return False
