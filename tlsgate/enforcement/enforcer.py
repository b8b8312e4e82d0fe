"""Security enforcement — reconcile expected vs. actual channel.

get_target_url() returns the absolute URL the client must be sent to, or None
when no redirect is needed. The URL is assembled from the request's original
path and raw query string without decoding or re-encoding either, so upstream
query semantics and any session segments in the path survive the switch.

INVARIANT: never raises. An unexpected failure is logged and treated as "no
redirect" — a pass-through is preferred over breaking the request.
"""

from __future__ import annotations

from typing import Optional, Protocol

from tlsgate.config import Settings
from tlsgate.constants import HTTP_SCHEME, HTTPS_SCHEME
from tlsgate.models.request import EvaluationContext, RequestSecurity, build_url
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)


class SecurityEnforcer(Protocol):
    def get_target_url(
        self,
        context: EvaluationContext,
        expected: RequestSecurity,
        settings: Settings,
    ) -> Optional[str]:
        ...


class SchemeSwitchEnforcer:
    """Default enforcer: flips scheme (and port) to satisfy the expectation."""

    def get_target_url(
        self,
        context: EvaluationContext,
        expected: RequestSecurity,
        settings: Settings,
    ) -> Optional[str]:
        if expected is RequestSecurity.IGNORE:
            return None

        wants_secure = expected is RequestSecurity.SECURE
        if context.is_secure == wants_secure:
            logger.debug(
                "Request already matches expected security",
                expected=expected.value,
                path=context.original_path,
            )
            return None

        try:
            target_url = _build_target_url(context, wants_secure, settings)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Could not determine target URL — not redirecting",
                path=context.original_path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None

        if target_url == context.url:
            logger.warning(
                "Target URL equals current URL — not redirecting (loop guard)",
                url=target_url,
            )
            return None

        return target_url


def _build_target_url(context: EvaluationContext, secure: bool, settings: Settings) -> str:
    base_url = settings.base_secure_url if secure else settings.base_insecure_url
    if base_url:
        return base_url + context.path_and_query

    scheme = HTTPS_SCHEME if secure else HTTP_SCHEME
    # Without an override the target scheme's default port is used.
    port = settings.secure_port if secure else settings.insecure_port
    return build_url(scheme, context.host, port, context.path_and_query)
