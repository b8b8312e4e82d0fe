"""Starlette middleware wiring the tlsgate pipeline into an ASGI app.

Registration:
    pipeline = SecurityPipeline(SettingsStore(load_settings()))
    app.add_middleware(SecuritySwitchMiddleware, pipeline=pipeline)

Register it outermost so it runs before routing and before anything reads the
request body. It sees the scope's ``raw_path`` — the path as the client sent
it — so a mount or path rewrite further in never changes what rules match.

Per request:
  - one settings snapshot is taken and used for every stage;
  - inactive (no settings / mode off) → pass through untouched;
  - no usable host in the scope      → WARNING, pass through;
  - redirect decision                → redirector response, app never called;
  - otherwise                        → app response, then enrichers.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from tlsgate.constants import REQUEST_ID_HEADER
from tlsgate.models.request import EvaluationContext, MissingRequestContextError
from tlsgate.pipeline import SecurityPipeline
from tlsgate.utils.logger import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)


class SecuritySwitchMiddleware(BaseHTTPMiddleware):
    """Redirect requests arriving on the wrong channel; enrich the rest."""

    def __init__(self, app: ASGIApp, pipeline: SecurityPipeline) -> None:
        super().__init__(app)
        self.pipeline = pipeline

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        settings = self.pipeline.store.get()
        if not self.pipeline.is_active(settings):
            return await call_next(request)
        assert settings is not None

        set_request_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            try:
                context = EvaluationContext.from_scope(
                    request.scope, settings.offloaded_security_headers
                )
            except MissingRequestContextError as exc:
                logger.warning(
                    "Missing request context, skipping security evaluation",
                    error=str(exc),
                )
                return await call_next(request)

            decision = self.pipeline.decide(context, settings)
            if decision.should_redirect:
                return self.pipeline.redirect(context, decision, settings)

            response = await call_next(request)
            self.pipeline.enrich(response, context, decision, settings)
            return response
        finally:
            clear_request_id()
