"""tlsgate rule set.

Public API:
    Rule               — one compiled path rule
    MatchType          — wildcard | regex
    RuleError          — malformed rule entry
    build_rule         — compile a rule from typed values
    compile_rules      — compile the ordered config list, skipping bad entries
    find_matching_rule — first-match lookup
"""
from tlsgate.rules.compiler import MatchType, Rule, RuleError, build_rule, compile_rule, compile_rules
from tlsgate.rules.matcher import find_matching_rule

__all__ = [
    "MatchType",
    "Rule",
    "RuleError",
    "build_rule",
    "compile_rule",
    "compile_rules",
    "find_matching_rule",
]
