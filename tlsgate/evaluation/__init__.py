"""tlsgate evaluation — expected security of a request.

Public API:
    SecurityEvaluator     — evaluator protocol
    RuleSecurityEvaluator — default, rule-set backed evaluator
    EvaluateRequestArgs   — mutable slot handed to override handlers
    RequestOverrider      — override handler protocol
    run_overriders        — run handlers in order, last write wins
"""
from tlsgate.evaluation.evaluator import RuleSecurityEvaluator, SecurityEvaluator
from tlsgate.evaluation.overrides import EvaluateRequestArgs, RequestOverrider, run_overriders

__all__ = [
    "EvaluateRequestArgs",
    "RequestOverrider",
    "RuleSecurityEvaluator",
    "SecurityEvaluator",
    "run_overriders",
]
