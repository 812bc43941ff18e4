# deid/logic/summary.py

"""Audit summaries of redaction ledgers."""

from typing import Dict, Sequence

from deid.core.definitions import SUMMARY_LABELS
from deid.core.domain import RedactionRecord


def count_by_category(redactions: Sequence[RedactionRecord]) -> Dict[str, int]:
    """Counts records per category, in first-seen order."""
    counts: Dict[str, int] = {}
    for record in redactions:
        counts[record.category] = counts.get(record.category, 0) + 1
    return counts


def summarize(redactions: Sequence[RedactionRecord]) -> str:
    """Human-readable count per category, e.g. "3 names, 1 date, 2 phones"."""
    parts = []
    for category, count in count_by_category(redactions).items():
        singular, plural = SUMMARY_LABELS.get(
            category, (category.lower(), category.lower() + "s")
        )
        parts.append(f"{count} {singular if count == 1 else plural}")

    return ", ".join(parts) or "no PHI found"
