"""Response enrichment hook.

Enrichers run, in registration order, on the downstream response of every
request that was NOT redirected. They may only touch headers and metadata.

Failure policy differs from the override hook: an enricher that raises is
logged and skipped. The remaining enrichers still run and the response is
still returned.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from starlette.responses import Response

from tlsgate.config import Settings
from tlsgate.constants import HSTS_HEADER
from tlsgate.models.request import EvaluationContext, RequestSecurity
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)


class ResponseEnricher(Protocol):
    def enrich(
        self,
        response: Response,
        context: EvaluationContext,
        expected: RequestSecurity,
        settings: Settings,
    ) -> None:
        ...


class HstsEnricher:
    """Adds Strict-Transport-Security to responses served over TLS.

    Only emitted for secure requests (RFC 6797 §7.2: ignored over plain HTTP)
    and only when ``settings.hsts.enabled``. An existing header set by the
    application is left alone.
    """

    def enrich(
        self,
        response: Response,
        context: EvaluationContext,
        expected: RequestSecurity,
        settings: Settings,
    ) -> None:
        if not settings.hsts.enabled or not context.is_secure:
            return
        if HSTS_HEADER in response.headers:
            return
        response.headers[HSTS_HEADER] = settings.hsts.header_value


def default_enrichers() -> list[ResponseEnricher]:
    return [HstsEnricher()]


def enrich_response(
    enrichers: Iterable[ResponseEnricher],
    response: Response,
    context: EvaluationContext,
    expected: RequestSecurity,
    settings: Settings,
) -> None:
    """Run every enricher; isolate and log individual failures."""
    for enricher in enrichers:
        try:
            enricher.enrich(response, context, expected, settings)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Response enricher failed (non-fatal)",
                enricher=type(enricher).__name__,
                path=context.original_path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
