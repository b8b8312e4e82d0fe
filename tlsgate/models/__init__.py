"""tlsgate request model.

Public API:
    RequestSecurity            — expected security of a request
    EvaluationContext          — immutable per-request view built from the ASGI scope
    MissingRequestContextError — scope lacks what evaluation needs
"""
from tlsgate.models.request import (
    EvaluationContext,
    MissingRequestContextError,
    RequestSecurity,
    build_url,
)

__all__ = ["EvaluationContext", "MissingRequestContextError", "RequestSecurity", "build_url"]
