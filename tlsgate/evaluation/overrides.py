"""Request evaluation override hook.

Handlers registered on the pipeline run before the rule set is consulted.
Each receives the same EvaluateRequestArgs and may set ``expected_security``.
Every handler runs, in registration order; a later handler overwrites an
earlier one's value. If the final value is not None the evaluator is skipped.

A handler that raises aborts the request: the exception propagates to the
host instead of letting the request through with a possibly-wrong decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from tlsgate.config import Settings
from tlsgate.models.request import EvaluationContext, RequestSecurity
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class EvaluateRequestArgs:
    """Mutable result slot shared by the override handlers of one request."""

    context: EvaluationContext
    settings: Settings
    expected_security: Optional[RequestSecurity] = None


class RequestOverrider(Protocol):
    def evaluate_request(self, args: EvaluateRequestArgs) -> None:
        ...


def run_overriders(
    overriders: Iterable[RequestOverrider],
    args: EvaluateRequestArgs,
) -> Optional[RequestSecurity]:
    """Invoke every handler in order and return the final slot value."""
    for overrider in overriders:
        overrider.evaluate_request(args)

    if args.expected_security is not None:
        logger.info(
            "Using expected security supplied by override handler",
            expected=args.expected_security.value,
            path=args.context.original_path,
        )
    return args.expected_security
