# deid/engine/regex_pass.py

"""Sequential regex redaction over the PHI pattern library."""

import logging
import re
from typing import List, Optional, Tuple

from deid.core.domain import DeidentifyResult, RedactionRecord
from deid.engine.library import PatternLibrary, PhiPattern, build_pattern_library

logger = logging.getLogger(__name__)


def _apply_pattern(
    pattern: PhiPattern, text: str, library: PatternLibrary
) -> Tuple[str, List[RedactionRecord]]:
    """Runs one detector over the working text.

    Scanning and substitution happen in the same pass, so every record
    describes a span that was actually replaced. Offsets index ``text``,
    the working text as it stood before this detector ran.
    """
    records: List[RedactionRecord] = []

    def substitute(match: re.Match) -> str:
        original = match.group(0)
        value = pattern.value_of(match)

        if pattern.is_guarded(value, library.stop_words, library.clinical_terms):
            return original

        replacement = pattern.replacement.render(match)
        if replacement == original:
            return original

        records.append(
            RedactionRecord(
                category=pattern.category,
                original=original,
                replacement=replacement,
                start=match.start(),
                end=match.end(),
                value=value,
                rule_name=pattern.name,
            )
        )
        return replacement

    return pattern.regex.sub(substitute, text), records


def apply_patterns(
    text: str, library: Optional[PatternLibrary] = None
) -> DeidentifyResult:
    """Applies every detector in priority order.

    Each detector sees the cumulative output of the ones before it. The
    ledger is in detector order, then match order within a detector, which
    is not necessarily text position order.

    Args:
        text: Raw input text
        library: Pattern library to use; defaults to the configured one

    Returns:
        DeidentifyResult with the redacted text and its ledger
    """
    if not text:
        return DeidentifyResult.empty()

    library = library or build_pattern_library()

    working = text
    ledger: List[RedactionRecord] = []

    for pattern in library:
        working, records = _apply_pattern(pattern, working, library)
        ledger.extend(records)

    logger.debug(
        "Regex redaction pass completed",
        extra={
            "redaction_count": len(ledger),
            "text_length": len(text),
            "library_version": library.version,
        },
    )

    return DeidentifyResult(text=working, redactions=tuple(ledger))
