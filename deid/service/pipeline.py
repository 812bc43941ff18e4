# deid/service/pipeline.py

"""Public de-identification and re-identification entry points."""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from deid.core.domain import DeidentifyResult, RedactionRecord
from deid.core.exceptions import ValidationError
from deid.engine.ner_model import get_model_loader
from deid.engine.ner_pass import augment_with_ner
from deid.engine.regex_pass import apply_patterns
from deid.logic.reidentify import reidentify_structure, reidentify_text
from deid.logic.summary import summarize
from deid.service.config import settings

logger = logging.getLogger(__name__)


def _is_blank(text: Optional[str]) -> bool:
    if text is None:
        return True

    if not isinstance(text, str):
        logger.error(f"Invalid input type received: {type(text)}")
        raise ValidationError(f"Expected text input, got {type(text).__name__}")

    return not text.strip()


def deidentify_sync(text: Optional[str]) -> DeidentifyResult:
    """Regex-only de-identification.

    Args:
        text: Raw clinical text

    Returns:
        DeidentifyResult; empty text and ledger for blank input

    Raises:
        ValidationError: If text is neither a string nor None
    """
    if _is_blank(text):
        return DeidentifyResult.empty()

    result = apply_patterns(text)

    logger.info(
        "De-identification completed (regex only)",
        extra={"text_length": len(text), "redaction_count": len(result.redactions)},
    )
    return result


async def deidentify(text: Optional[str]) -> DeidentifyResult:
    """Full de-identification: regex pass followed by entity recognition.

    The entity-recognition stage fails open: on any model error the regex
    result is returned, never less redacted text.

    Args:
        text: Raw clinical text

    Returns:
        DeidentifyResult; empty text and ledger for blank input

    Raises:
        ValidationError: If text is neither a string nor None
    """
    if _is_blank(text):
        return DeidentifyResult.empty()

    regex_result = apply_patterns(text)

    if not settings.ner_enabled:
        result = regex_result
    else:
        result = await augment_with_ner(regex_result, get_model_loader())

    logger.info(
        "De-identification completed",
        extra={
            "text_length": len(text),
            "regex_redactions": len(regex_result.redactions),
            "ner_redactions": len(result.redactions) - len(regex_result.redactions),
        },
    )
    return result


def reidentify(text: str, redactions: Sequence[RedactionRecord]) -> str:
    """Restores original values into a single AI-generated string."""
    return reidentify_text(text, redactions)


def reidentify_sections(
    sections: Mapping[str, Any], redactions: Sequence[RedactionRecord]
) -> Dict[str, Any]:
    """Restores original values across a structured AI output object.

    Strings and lists of strings are restored, nested mappings are walked,
    and any other value is returned unchanged.
    """
    return dict(reidentify_structure(dict(sections), redactions))


def reidentify_metadata(
    metadata: Optional[Mapping[str, Any]], redactions: Sequence[RedactionRecord]
) -> Optional[Dict[str, Any]]:
    """Restores original values into a flat metadata object; None stays None."""
    if metadata is None:
        return None
    return dict(reidentify_structure(dict(metadata), redactions))


def summarize_redactions(redactions: Sequence[RedactionRecord]) -> str:
    """Audit string with counts per category; no side effects."""
    return summarize(redactions)


async def preload_ner_model() -> bool:
    """Warms the entity-recognition model at startup.

    Returns:
        True if a model is available, False otherwise. Never raises.
    """
    if not settings.ner_enabled:
        return False

    try:
        await get_model_loader().aget()
        return True
    except Exception:
        logger.error("Failed to preload entity-recognition model", exc_info=True)
        return False
