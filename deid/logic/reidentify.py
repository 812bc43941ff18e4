# deid/logic/reidentify.py

"""Restores original identifiers into AI-generated text.

Substitution is positional per placeholder: the Nth occurrence of a
placeholder receives the Nth recorded value for it, wrapping around when the
output repeats a placeholder more often than values were recorded. Because
the model may reorder, merge or drop content, this is a best-effort
approximation of the original document, not an exact inverse of
de-identification. A placeholder with no recorded value is left in place.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from deid.core.definitions import PLACEHOLDER_PATTERN, Placeholder
from deid.core.domain import RedactionRecord, ReidentificationMap

logger = logging.getLogger(__name__)

# Parenthetical annotations such as "(fictional)" or "(Age 54)". Purely
# numeric groups like the area code in "(555) 123-4567" are kept.
_ANNOTATION = re.compile(r"\s*\((?=[^)]*[A-Za-z])[^)]*\)\s*")
_LEADING_TITLE = re.compile(r"^Dr\.?\s+", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def placeholder_key(replacement: str) -> str:
    """Extracts the bracketed token from replacement text.

    "DOB: [DOB]" -> "[DOB]", "Dr. [PROVIDER]" -> "[PROVIDER]".
    """
    match = PLACEHOLDER_PATTERN.search(replacement)
    return match.group(0) if match else replacement


def extract_value(record: RedactionRecord, placeholder: str) -> str:
    """Returns the normalized original value a placeholder stands for."""
    value = record.value or record.original

    # "Patient Name: John Smith" -> "John Smith"
    colon = value.find(":")
    if colon != -1 and colon < len(value) - 1:
        value = value[colon + 1 :].strip()

    value = _ANNOTATION.sub(" ", value).strip()
    value = _WHITESPACE.sub(" ", value)

    # The de-identified text already carries "Dr." in front of the placeholder
    if placeholder == Placeholder.PROVIDER:
        value = _LEADING_TITLE.sub("", value).strip()

    return value


def build_reidentification_map(
    redactions: Sequence[RedactionRecord],
) -> ReidentificationMap:
    """Groups ledger values by placeholder, de-duplicated in first-seen order.

    Every placeholder in the ledger gets a key, even when none of its values
    survive normalization, so it can be told apart from an unknown token.
    """
    mapping: ReidentificationMap = {}

    for record in redactions:
        placeholder = placeholder_key(record.replacement)
        values = mapping.setdefault(placeholder, [])

        value = extract_value(record, placeholder)
        if not value or value.startswith("["):
            continue
        if value not in values:
            values.append(value)

    return mapping


class Reidentifier:
    """Applies a ReidentificationMap to strings and nested containers."""

    def __init__(self, mapping: ReidentificationMap) -> None:
        self.mapping = mapping
        keys = sorted((k for k, v in mapping.items() if v), key=len, reverse=True)
        self._pattern: Optional[re.Pattern] = (
            re.compile("|".join(re.escape(k) for k in keys)) if keys else None
        )

    def restore_text(self, text: str) -> str:
        """Replaces every known placeholder in a single string.

        All placeholders are substituted in one scan, so restored values are
        never re-scanned. Cursors start fresh for each string.
        """
        if not text or self._pattern is None:
            return text

        cursors: Dict[str, int] = {}

        def substitute(match: re.Match) -> str:
            placeholder = match.group(0)
            values = self.mapping[placeholder]
            index = cursors.get(placeholder, 0)
            cursors[placeholder] = index + 1
            return values[index % len(values)]

        return self._pattern.sub(substitute, text)

    def restore(self, value: Any) -> Any:
        """Recursively restores strings inside lists, tuples and dicts.

        Non-string leaves (numbers, booleans, None) pass through unchanged.
        """
        if isinstance(value, str):
            return self.restore_text(value)
        if isinstance(value, list):
            return [self.restore(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.restore(item) for item in value)
        if isinstance(value, dict):
            return {key: self.restore(item) for key, item in value.items()}
        return value


def reidentify_text(text: str, redactions: Sequence[RedactionRecord]) -> str:
    """Restores original values into a single string."""
    if not text or not redactions:
        return text
    return Reidentifier(build_reidentification_map(redactions)).restore_text(text)


def reidentify_structure(value: Any, redactions: Sequence[RedactionRecord]) -> Any:
    """Restores original values throughout a nested AI output structure."""
    if not redactions:
        return value

    reidentifier = Reidentifier(build_reidentification_map(redactions))
    restored = reidentifier.restore(value)

    logger.debug(
        "Re-identification applied",
        extra={
            "placeholder_count": len(reidentifier.mapping),
            "unresolved": [k for k, v in reidentifier.mapping.items() if not v],
        },
    )
    return restored


def unresolved_placeholders(text: str) -> List[str]:
    """Lists placeholder tokens still present in text, in order of appearance."""
    return PLACEHOLDER_PATTERN.findall(text or "")
