"""Security evaluation — what channel *should* this request use?

evaluate() is a pure function of (context, settings). Settings are immutable,
so one evaluator instance is shared by every concurrent request.

Evaluation order:
  1. ignored extension            → IGNORE
  2. RemoteOnly + local client    → IGNORE
  3. AJAX request (if configured) → IGNORE
  4. first matching rule          → rule.security
  5. no match                     → IGNORE

The caller (SecurityPipeline) never calls evaluate() when mode is off.
"""

from __future__ import annotations

import posixpath
from typing import Protocol

from tlsgate.config import Mode, Settings
from tlsgate.models.request import EvaluationContext, RequestSecurity
from tlsgate.rules.matcher import find_matching_rule
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)


class SecurityEvaluator(Protocol):
    def evaluate(self, context: EvaluationContext, settings: Settings) -> RequestSecurity:
        ...


class RuleSecurityEvaluator:
    """Default evaluator backed by the configured rule set."""

    def evaluate(self, context: EvaluationContext, settings: Settings) -> RequestSecurity:
        path = context.original_path

        if path_extension(path) in settings.ignored_extensions:
            logger.debug("Ignored extension; skipping evaluation", path=path)
            return RequestSecurity.IGNORE

        if settings.mode is Mode.REMOTE_ONLY and context.is_local:
            logger.debug("Local request in remote_only mode; skipping evaluation", path=path)
            return RequestSecurity.IGNORE

        if settings.ignore_ajax_requests and context.is_ajax:
            logger.debug("AJAX request; skipping evaluation", path=path)
            return RequestSecurity.IGNORE

        rule = find_matching_rule(path, settings.rules)
        if rule is None:
            logger.debug("No rule matched", path=path)
            return RequestSecurity.IGNORE

        logger.debug(
            "Rule matched",
            path=path,
            pattern=rule.pattern,
            security=rule.security.value,
        )
        return rule.security


def path_extension(path: str) -> str:
    """Lower-case extension (with dot) of the last path segment, or ""."""
    last_segment = path.rsplit("/", 1)[-1]
    return posixpath.splitext(last_segment)[1].lower()
