"""
Tests for the redaction audit summary.
"""

import pytest

from deid.core.definitions import Category
from deid.core.domain import RedactionRecord
from deid.logic.summary import count_by_category
from deid.service.pipeline import deidentify_sync, summarize_redactions


def _records(*categories):
    return [
        RedactionRecord(category=c, original="x", replacement="[X]", start=0, end=1)
        for c in categories
    ]


@pytest.mark.unit
class TestSummary:
    def test_empty_ledger(self):
        assert summarize_redactions([]) == "no PHI found"

    def test_counts_in_first_seen_order(self):
        records = _records(
            Category.NAME,
            Category.NAME,
            Category.DATE,
            Category.PHONE,
            Category.NAME,
            Category.PHONE,
        )
        assert summarize_redactions(records) == "3 names, 1 date, 2 phones"

    def test_count_by_category(self):
        records = _records(Category.MRN, Category.MRN, Category.SSN)
        assert count_by_category(records) == {Category.MRN: 2, Category.SSN: 1}

    def test_unknown_category_falls_back_to_lowercase(self):
        assert summarize_redactions(_records("VEHICLE", "VEHICLE")) == "2 vehicles"

    def test_basic_note(self, basic_note):
        result = deidentify_sync(basic_note)
        assert summarize_redactions(result.redactions) == (
            "1 MRN, 1 date of birth, 1 name, 1 phone"
        )

    def test_summary_is_pure(self, basic_note):
        result = deidentify_sync(basic_note)
        before = result.redactions
        summarize_redactions(result.redactions)
        assert result.redactions == before
