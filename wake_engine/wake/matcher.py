"""Tiered wake-phrase matching: exact → alternatives → fuzzy.

Recognizers routinely mis-spell an unusual name, so a transcript is checked
against the primary phrase first, then against the list of spellings seen in
practice, and only then against a narrow greeting + "r…m" pattern.  The
fuzzy tier stays last so ordinary sentences that start with "hey" are not
flagged.

``matches`` is a pure function of its inputs and is safe to call from any
number of sessions at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from wake_engine.config import WakeWordConfig

logger = logging.getLogger(__name__)

REASON_EXACT = "EXACT"
REASON_FUZZY = "FUZZY"
REASON_ALTERNATIVE_PREFIX = "ALTERNATIVE:"

@dataclass(frozen=True)
class MatchResult:
    matched: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.matched


NO_MATCH = MatchResult(matched=False)


def matches(text: str | None, config: WakeWordConfig) -> MatchResult:
    """Return whether *text* contains the wake phrase, and which tier hit."""
    if not text:
        return NO_MATCH
    text = text.lower().strip()
    if not text:
        return NO_MATCH

    if config.primary_phrase in text:
        return MatchResult(matched=True, reason=REASON_EXACT)

    for alternative in config.alternatives:
        if alternative in text:
            logger.info("[Wake] Alternative matched: %r", alternative)
            return MatchResult(matched=True, reason=f"{REASON_ALTERNATIVE_PREFIX}{alternative}")

    if config.fuzzy_pattern.search(text):
        logger.info("[Wake] Fuzzy match for: %r", text)
        return MatchResult(matched=True, reason=REASON_FUZZY)

    return NO_MATCH
