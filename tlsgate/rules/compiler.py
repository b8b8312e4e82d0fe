"""Rule compilation for tlsgate.

Turns the raw ``rules:`` list from the config file into an ordered tuple of
immutable Rule objects. Each pattern is compiled once, at load time, with
google-re2 so that request-time matching is linear in the path length no
matter what an operator wrote in the config.

Two pattern syntaxes are supported, chosen explicitly per rule with ``match``:

  wildcard (default)  ``*`` = any run of characters, ``?`` = one character,
                      everything else literal. Must match the whole path.
  regex               re2 syntax, anchored at the start of the path only.

IMPORT RULES:
  - `import re2` ONLY — `import re` is PROHIBITED in this package.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

import re2

from tlsgate.models.request import RequestSecurity
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)

# Characters with meaning in re2 syntax that must be escaped in wildcard patterns.
_REGEX_SPECIALS: frozenset[str] = frozenset("\\.^$+()[]{}|")


class MatchType(str, enum.Enum):
    WILDCARD = "wildcard"
    REGEX = "regex"


class RuleError(ValueError):
    """A single rule entry is malformed."""


@dataclass(frozen=True)
class Rule:
    """One path rule.

    ``regex`` is derived from the other fields; it is excluded from equality so
    two rules built from the same config compare equal.
    """

    pattern: str
    security: RequestSecurity
    match_type: MatchType = MatchType.WILDCARD
    ignore_case: bool = True
    regex: Any = field(default=None, compare=False, repr=False)

    def matches(self, path: str) -> bool:
        return self.regex.match(path) is not None


# ─── Public API ───────────────────────────────────────────────────────────────


def build_rule(
    pattern: str,
    security: RequestSecurity,
    match_type: MatchType = MatchType.WILDCARD,
    ignore_case: bool = True,
) -> Rule:
    """Compile a rule from typed values.

    Raises:
        RuleError: The pattern is empty or is not valid re2 syntax.
    """
    if not pattern:
        raise RuleError("pattern must be a non-empty string")

    if match_type is MatchType.WILDCARD:
        source = wildcard_to_regex(pattern)
    else:
        source = pattern
    if ignore_case:
        source = "(?i)" + source

    try:
        regex = re2.compile(source)
    except re2.error as exc:
        raise RuleError(f"invalid {match_type.value} pattern {pattern!r}: {exc}") from exc

    return Rule(
        pattern=pattern,
        security=security,
        match_type=match_type,
        ignore_case=ignore_case,
        regex=regex,
    )


def compile_rule(raw: Any) -> Rule:
    """Compile one raw config mapping into a Rule.

    Expected keys: ``pattern`` (required), ``security`` (required:
    secure | insecure | ignore), ``match`` (wildcard | regex), ``ignore_case``.

    Raises:
        RuleError: The mapping is missing a field or holds an invalid value.
    """
    if not isinstance(raw, dict):
        raise RuleError(f"rule must be a mapping, got {type(raw).__name__}")

    pattern = raw.get("pattern")
    if not isinstance(pattern, str) or not pattern:
        raise RuleError("rule is missing a non-empty 'pattern'")

    security = _parse_security(raw.get("security"))
    match_type = _parse_match_type(raw.get("match", MatchType.WILDCARD.value))

    ignore_case = raw.get("ignore_case", True)
    if not isinstance(ignore_case, bool):
        raise RuleError(f"'ignore_case' must be true or false, got {ignore_case!r}")

    return build_rule(pattern, security, match_type, ignore_case)


def compile_rules(raw_list: Any) -> tuple[Rule, ...]:
    """Compile an ordered list of raw rules, skipping malformed entries.

    Never raises. Each rejected entry is logged at ERROR with its index; the
    remaining rules keep their relative order.
    """
    if raw_list is None:
        return ()
    if not isinstance(raw_list, list):
        logger.error(
            "rules is not a list — no rules loaded",
            actual_type=type(raw_list).__name__,
        )
        return ()

    rules: list[Rule] = []
    for index, raw in enumerate(raw_list):
        try:
            rules.append(compile_rule(raw))
        except RuleError as exc:
            logger.error("Rejected malformed rule — skipping", index=index, error=str(exc))

    if raw_list and not rules:
        logger.warning(
            "Every configured rule was rejected — all requests will be ignored",
            configured=len(raw_list),
        )
    return tuple(rules)


def wildcard_to_regex(pattern: str) -> str:
    """Translate a wildcard pattern into an re2 pattern matching the whole path."""
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            # Collapse runs of "*" into a single ".*"
            if not parts or parts[-1] != ".*":
                parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char in _REGEX_SPECIALS:
            parts.append("\\" + char)
        else:
            parts.append(char)
    return "".join(parts) + r"\z"


# ─── Parsing helpers ──────────────────────────────────────────────────────────


def _parse_security(value: Optional[Any]) -> RequestSecurity:
    if not isinstance(value, str):
        raise RuleError(f"rule has no valid 'security' value: {value!r}")
    try:
        return RequestSecurity(value.strip().lower())
    except ValueError as exc:
        raise RuleError(
            f"unknown security {value!r}; expected one of "
            f"{[s.value for s in RequestSecurity]}"
        ) from exc


def _parse_match_type(value: Any) -> MatchType:
    if not isinstance(value, str):
        raise RuleError(f"'match' must be a string, got {value!r}")
    try:
        return MatchType(value.strip().lower())
    except ValueError as exc:
        raise RuleError(
            f"unknown match type {value!r}; expected one of {[m.value for m in MatchType]}"
        ) from exc
