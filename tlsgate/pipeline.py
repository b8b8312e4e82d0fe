"""The tlsgate request pipeline.

Per request, strictly in this order:

    override handlers ──(value set)──────────────┐
          │ (no value)                           │
          ▼                                      ▼
    RuleSecurityEvaluator ──► expected security ──► enforcer ──► target URL?
                                                                │
                               redirector ◄──────── yes ────────┤
                               enrichers  ◄──────── no ─────────┘

Redirect and enrichment are mutually exclusive outcomes.

Collaborators are injected through the constructor; the defaults are the
standard implementations. Nothing here touches Starlette request objects —
the middleware converts the ASGI scope into an EvaluationContext first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from starlette.responses import Response

from tlsgate.config import Mode, Settings
from tlsgate.enforcement.enforcer import SchemeSwitchEnforcer, SecurityEnforcer
from tlsgate.enrichment.enrichers import ResponseEnricher, default_enrichers, enrich_response
from tlsgate.evaluation.evaluator import RuleSecurityEvaluator, SecurityEvaluator
from tlsgate.evaluation.overrides import EvaluateRequestArgs, RequestOverrider, run_overriders
from tlsgate.models.request import EvaluationContext, RequestSecurity
from tlsgate.redirection.redirector import LocationRedirector, StandardRedirector
from tlsgate.store import SettingsStore
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating and enforcing one request."""

    expected: RequestSecurity
    target_url: Optional[str] = None
    overridden: bool = False

    @property
    def should_redirect(self) -> bool:
        return self.target_url is not None


class SecurityPipeline:
    """Evaluate → enforce → redirect-or-enrich, against one settings store."""

    def __init__(
        self,
        store: Union[SettingsStore, Settings, None] = None,
        evaluator: Optional[SecurityEvaluator] = None,
        enforcer: Optional[SecurityEnforcer] = None,
        redirector: Optional[LocationRedirector] = None,
        overriders: Iterable[RequestOverrider] = (),
        enrichers: Optional[Iterable[ResponseEnricher]] = None,
    ) -> None:
        if not isinstance(store, SettingsStore):
            store = SettingsStore(store)
        self.store = store
        self.evaluator: SecurityEvaluator = evaluator or RuleSecurityEvaluator()
        self.enforcer: SecurityEnforcer = enforcer or SchemeSwitchEnforcer()
        self.redirector: LocationRedirector = redirector or StandardRedirector()
        self.overriders: list[RequestOverrider] = list(overriders)
        self.enrichers: list[ResponseEnricher] = (
            default_enrichers() if enrichers is None else list(enrichers)
        )

    # ── Registration ──────────────────────────────────────────────────────────

    def register_overrider(self, overrider: RequestOverrider) -> None:
        self.overriders.append(overrider)

    def register_enricher(self, enricher: ResponseEnricher) -> None:
        self.enrichers.append(enricher)

    # ── Stages ────────────────────────────────────────────────────────────────

    @staticmethod
    def is_active(settings: Optional[Settings]) -> bool:
        """False when no settings were loaded or mode is off."""
        return settings is not None and settings.mode is not Mode.OFF

    def evaluate(
        self,
        context: EvaluationContext,
        settings: Settings,
    ) -> tuple[RequestSecurity, bool]:
        """Return (expected security, whether an override handler supplied it).

        Override handler exceptions propagate.
        """
        args = EvaluateRequestArgs(context=context, settings=settings)
        overridden = run_overriders(self.overriders, args)
        if overridden is not None:
            return overridden, True
        return self.evaluator.evaluate(context, settings), False

    def decide(self, context: EvaluationContext, settings: Settings) -> Decision:
        """Run evaluation and enforcement for one request."""
        if not self.is_active(settings):
            return Decision(expected=RequestSecurity.IGNORE)

        expected, overridden = self.evaluate(context, settings)
        if expected is RequestSecurity.IGNORE:
            logger.debug("Expected security is ignore; done", path=context.original_path)
            return Decision(expected=expected, overridden=overridden)

        target_url = self.enforcer.get_target_url(context, expected, settings)
        if not target_url:
            logger.debug(
                "No target URL determined; done",
                expected=expected.value,
                path=context.original_path,
            )
            return Decision(expected=expected, overridden=overridden)

        return Decision(expected=expected, target_url=target_url, overridden=overridden)

    def redirect(self, context: EvaluationContext, decision: Decision, settings: Settings) -> Response:
        assert decision.target_url is not None
        return self.redirector.redirect(
            context, decision.target_url, settings.bypass_security_warning
        )

    def enrich(
        self,
        response: Response,
        context: EvaluationContext,
        decision: Decision,
        settings: Settings,
    ) -> None:
        enrich_response(self.enrichers, response, context, decision.expected, settings)
