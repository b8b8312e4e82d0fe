"""Rule matching for tlsgate.

find_matching_rule() is the only lookup the evaluator performs against the
rule set. First matching rule in declaration order wins.

IMPORT RULES:
  - `import re2` ONLY — `import re` is PROHIBITED.
"""

from __future__ import annotations

from typing import Iterable, Optional

import re2

from tlsgate.rules.compiler import Rule
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)


def find_matching_rule(path: str, rules: Iterable[Rule]) -> Optional[Rule]:
    """Return the first rule whose pattern matches ``path``, or None.

    A rule that errors at match time is treated as not matching; the scan
    continues with the next rule.
    """
    for rule in rules:
        try:
            if rule.matches(path):
                return rule
        except re2.error as exc:
            logger.error(
                "Rule match error (treating as no-match)",
                pattern=rule.pattern,
                match_type=rule.match_type.value,
                error=str(exc),
            )
    return None
