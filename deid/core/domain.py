# deid/core/domain.py

"""Domain models for de-identification results."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

# Placeholder token -> ordered, de-duplicated original values
ReidentificationMap = Dict[str, List[str]]


@dataclass(frozen=True)
class RedactionRecord:
    """A single identifier occurrence that was replaced in the text.

    Attributes:
        category: Identifier class (see Category)
        original: Verbatim matched substring, label included when matched
        replacement: Text substituted for the match (e.g. "DOB: [DOB]")
        start: Starting character position in the text the detector ran on
        end: Ending character position in the text the detector ran on
        value: The identifier portion of the match, without its label
        rule_name: Name of the detector that produced this record
    """

    category: str
    original: str
    replacement: str
    start: int
    end: int
    value: str = ""
    rule_name: str = "Unknown"


@dataclass(frozen=True)
class DeidentifyResult:
    """De-identified text plus the ledger needed to reverse it.

    Attributes:
        text: Text with identifiers replaced by placeholders
        redactions: Ledger of records in the order they were produced
    """

    text: str
    redactions: Tuple[RedactionRecord, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "DeidentifyResult":
        return cls(text="", redactions=())
