"""
Test configuration for the de-identification engine.

Shared sample documents and fake entity-recognition models. No test
downloads model weights.
"""

import re
from typing import Any, Callable, Dict, List

import pytest

from deid.engine.ner_model import NerModelLoader

# ============================================
# Sample Documents
# ============================================

BASIC_NOTE = (
    "Patient Name: John Smith\n"
    "DOB: 03/15/1985\n"
    "MRN: 00012345\n"
    "Phone: (555) 123-4567\n"
    "\n"
    "Chief Complaint: Chest pain x 2 days"
)

FULL_NOTE = """Patient Metadata
Name: Jane Doe (fictional)
MRN: 00098765
DOB: 01/20/1971 (Age 54)
Sex: Female
Date of Encounter: 12/28/2025
Location: Emergency Department
Provider: Dr. Robert Johnson, MD

Chief Complaint: Shortness of breath

HPI: 54 yo female presents with 3 days of progressive dyspnea.
She reports associated cough with yellow sputum. Denies chest pain.
Contact: jane.doe@email.com, Cell: 555-987-6543

Vitals: T 101.2, BP 140/90, HR 98, RR 22, SpO2 94% RA

Assessment: Community-acquired pneumonia

Plan:
- Azithromycin 500mg x 5 days
- Follow up with PCP Dr. Sarah Williams in 5-7 days

Patient Address: 123 Main Street, Apt 4B, Boston, MA 02101"""

IDENTIFIERS_NOTE = (
    "Patient: Michael Brown\n"
    "SSN: 123-45-6789\n"
    "Insurance ID: ABC123456789\n"
    "Account #: 9876543210\n"
    "\n"
    "Reason for visit: Annual physical"
)

AGE_NOTE = (
    "Patient is a 95 year old male with history of CHF.\n"
    "Also treating his wife, 92 yo female.\n"
    "Compared to 45 yo son who is healthy."
)

DATES_NOTE = (
    "Date of Service: 12/28/2025\n"
    "Admission Date: December 25, 2025\n"
    "Last seen: Jan 15, 2024\n"
    "Follow-up scheduled for 2025-01-15"
)


@pytest.fixture
def basic_note() -> str:
    return BASIC_NOTE


@pytest.fixture
def full_note() -> str:
    return FULL_NOTE


@pytest.fixture
def identifiers_note() -> str:
    return IDENTIFIERS_NOTE


@pytest.fixture
def age_note() -> str:
    return AGE_NOTE


@pytest.fixture
def dates_note() -> str:
    return DATES_NOTE


# ============================================
# Fake Entity Recognition
# ============================================


def make_fake_ner(entities: Dict[str, str]) -> Callable[[str], List[Dict[str, Any]]]:
    """Builds a token-classification stand-in.

    Every whole-word occurrence of a key is reported as B-/I- tokens with the
    mapped label, one token per whitespace-separated word. Token indexes are
    word positions, so words of one entity are adjacent.
    """

    def ner(text: str) -> List[Dict[str, Any]]:
        tokens: List[Dict[str, Any]] = []
        for phrase, label in entities.items():
            for match in re.finditer(r"\b" + re.escape(phrase) + r"\b", text):
                first_index = len(text[: match.start()].split()) + 1
                for offset, word in enumerate(re.finditer(r"\S+", match.group(0))):
                    tokens.append(
                        {
                            "entity": ("B-" if offset == 0 else "I-") + label,
                            "score": 0.99,
                            "index": first_index + offset,
                            "word": word.group(0),
                            "start": match.start() + word.start(),
                            "end": match.start() + word.end(),
                        }
                    )
        return sorted(tokens, key=lambda t: t["start"])

    return ner


def make_loader(entities: Dict[str, str] = None) -> NerModelLoader:
    fake = make_fake_ner(entities or {})
    return NerModelLoader(
        primary_model="fake/primary",
        fallback_model="fake/fallback",
        factory=lambda model_name, device: fake,
    )


def make_broken_loader() -> NerModelLoader:
    def factory(model_name, device):
        raise OSError(f"cannot download {model_name}")

    return NerModelLoader(
        primary_model="fake/primary",
        fallback_model="fake/fallback",
        factory=factory,
    )


@pytest.fixture(autouse=True)
def offline_ner(monkeypatch):
    """Route the pipeline to a fake model that finds no entities."""
    loader = make_loader()
    monkeypatch.setattr("deid.service.pipeline.get_model_loader", lambda: loader)
    return loader
