# deid/core/definitions.py

"""Redaction categories, placeholder tokens and their display labels."""

import re
from typing import Dict, Tuple


class Category:
    """Constants representing the identifier classes the engine redacts."""

    # Regex-detected identifiers
    NAME = "NAME"
    DATE = "DATE"
    DOB = "DATE_OF_BIRTH"
    MRN = "MEDICAL_RECORD_NUMBER"
    SSN = "SOCIAL_SECURITY_NUMBER"
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    ADDRESS = "ADDRESS"
    FACILITY = "FACILITY"
    PROVIDER = "PROVIDER"
    ACCOUNT = "ACCOUNT"
    LICENSE = "LICENSE"
    AGE_OVER_89 = "AGE_OVER_89"
    FAMILY_MEMBER = "FAMILY_MEMBER"
    NARRATIVE_NAME = "NARRATIVE_NAME"

    # Entity-recognition additions
    LOCATION = "LOCATION"
    ORGANIZATION = "ORGANIZATION"


class Placeholder:
    """Bracketed tokens substituted for redacted values."""

    NAME = "[NAME]"
    PATIENT = "[PATIENT]"
    PROVIDER = "[PROVIDER]"
    LOCATION = "[LOCATION]"
    ORGANIZATION = "[ORG]"


# Matches any placeholder token emitted by the engine, e.g. "[DOB]",
# "[AGE 90+]" or "[CITY, STATE ZIP]".
PLACEHOLDER_PATTERN = re.compile(r"\[[A-Z0-9][A-Z0-9 ,+]*\]")

# Entity-recognition label -> (category, placeholder)
NER_LABEL_MAPPING: Dict[str, Tuple[str, str]] = {
    "PER": (Category.NAME, Placeholder.NAME),
    "LOC": (Category.LOCATION, Placeholder.LOCATION),
    "ORG": (Category.ORGANIZATION, Placeholder.ORGANIZATION),
}

# Category -> (singular, plural) used by the audit summary
SUMMARY_LABELS: Dict[str, Tuple[str, str]] = {
    Category.NAME: ("name", "names"),
    Category.DATE: ("date", "dates"),
    Category.DOB: ("date of birth", "dates of birth"),
    Category.MRN: ("MRN", "MRNs"),
    Category.SSN: ("SSN", "SSNs"),
    Category.PHONE: ("phone", "phones"),
    Category.EMAIL: ("email", "emails"),
    Category.ADDRESS: ("address", "addresses"),
    Category.FACILITY: ("facility", "facilities"),
    Category.PROVIDER: ("provider", "providers"),
    Category.ACCOUNT: ("account number", "account numbers"),
    Category.LICENSE: ("license number", "license numbers"),
    Category.AGE_OVER_89: ("age over 89", "ages over 89"),
    Category.FAMILY_MEMBER: ("family member", "family members"),
    Category.NARRATIVE_NAME: ("narrative name", "narrative names"),
    Category.LOCATION: ("location", "locations"),
    Category.ORGANIZATION: ("organization", "organizations"),
}
