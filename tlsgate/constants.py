"""Shared constants for tlsgate.

Default ports, header names and the stock ignore list live here so that the
evaluator, enforcer and config loader agree on a single definition.
"""

# ─── Schemes and default ports ────────────────────────────────────────────────

HTTP_SCHEME: str = "http"
HTTPS_SCHEME: str = "https"

DEFAULT_HTTP_PORT: int = 80
DEFAULT_HTTPS_PORT: int = 443

DEFAULT_PORTS: dict[str, int] = {
    HTTP_SCHEME: DEFAULT_HTTP_PORT,
    HTTPS_SCHEME: DEFAULT_HTTPS_PORT,
}

# ─── Request origin ───────────────────────────────────────────────────────────

# Client host names treated as "the local machine" for RemoteOnly mode.
# Literal addresses are checked with ipaddress (any loopback, IPv4-mapped too).
LOOPBACK_HOST_NAMES: frozenset[str] = frozenset({"localhost"})

# ─── Headers ──────────────────────────────────────────────────────────────────

REQUESTED_WITH_HEADER: str = "x-requested-with"
XML_HTTP_REQUEST: str = "xmlhttprequest"

REQUEST_ID_HEADER: str = "x-request-id"

HSTS_HEADER: str = "Strict-Transport-Security"

# ─── Evaluation defaults ──────────────────────────────────────────────────────

# Static assets that never need a scheme switch.
DEFAULT_IGNORED_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".css",
        ".js",
        ".map",
        ".ico",
        ".gif",
        ".jpg",
        ".jpeg",
        ".png",
        ".svg",
        ".webp",
        ".woff",
        ".woff2",
        ".ttf",
    }
)

# ─── HSTS ─────────────────────────────────────────────────────────────────────

DEFAULT_HSTS_MAX_AGE: int = 31_536_000  # one year, in seconds

# ─── Redirects ────────────────────────────────────────────────────────────────

# Methods that can be safely re-issued as GET after a 302.
SAFE_REDIRECT_METHODS: frozenset[str] = frozenset({"GET", "HEAD"})

REDIRECT_STATUS: int = 302
METHOD_PRESERVING_REDIRECT_STATUS: int = 307
