# deid/service/processing.py

"""End-to-end processing of one clinical document through an external model.

The language-model call is injected as a coroutine so this module never
performs network I/O itself:

    async def generate(text, sections, document_type) -> {"sections": {...},
                                                           "metadata": {...}}
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from deid.core.domain import RedactionRecord
from deid.core.exceptions import PipelineError
from deid.logic.reidentify import unresolved_placeholders
from deid.service.pipeline import (
    deidentify,
    reidentify_metadata,
    reidentify_sections,
    summarize_redactions,
)

logger = logging.getLogger(__name__)

SectionGenerator = Callable[
    [str, Sequence[str], Optional[str]], Awaitable[Mapping[str, Any]]
]


@dataclass
class ProcessedDocument:
    """Re-identified model output for one document.

    Attributes:
        sections: Section name -> restored text (or list of texts)
        metadata: Restored metadata object, if the model returned one
        redaction_summary: Audit string for the de-identification run
        redaction_count: Number of ledger records
        deidentified: False when the text was processed on-device as-is
        unresolved: Placeholders left in the output with no recorded value
    """

    sections: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
    redaction_summary: str = "no PHI found"
    redaction_count: int = 0
    deidentified: bool = True
    unresolved: List[str] = field(default_factory=list)


def _collect_unresolved(value: Any) -> List[str]:
    if isinstance(value, str):
        return unresolved_placeholders(value)
    if isinstance(value, (list, tuple)):
        return [p for item in value for p in _collect_unresolved(item)]
    if isinstance(value, dict):
        return [p for item in value.values() for p in _collect_unresolved(item)]
    return []


async def process_document(
    text: str,
    generate: SectionGenerator,
    *,
    sections: Sequence[str],
    document_type: Optional[str] = None,
    use_local_ai: bool = False,
    timeout: Optional[float] = None,
) -> ProcessedDocument:
    """De-identifies text, runs the generator, and re-identifies its output.

    Args:
        text: Raw document text (OCR or extracted PDF text)
        generate: Language-model collaborator
        sections: Section names to request, chosen from the document type
        document_type: Opaque classifier label passed through to the generator
        use_local_ai: Data stays on-device; skip de-identification entirely
        timeout: Seconds to wait for the generator

    Returns:
        ProcessedDocument with restored sections and metadata

    Raises:
        PipelineError: If the generator fails, times out or returns no sections.
            Nothing is re-identified in that case.
    """
    redactions: Sequence[RedactionRecord] = ()
    text_to_process = text

    if use_local_ai:
        logger.info("Using local model, skipping de-identification")
    else:
        result = await deidentify(text)
        text_to_process = result.text
        redactions = result.redactions
        logger.info(f"De-identified: {summarize_redactions(redactions)}")

    try:
        generated = await asyncio.wait_for(
            generate(text_to_process, list(sections), document_type), timeout
        )
    except asyncio.TimeoutError as e:
        logger.error(
            "Section generation timed out",
            extra={"timeout": timeout, "document_type": document_type},
        )
        raise PipelineError("Section generation timed out") from e
    except Exception as e:
        logger.error(
            "Section generation failed",
            exc_info=True,
            extra={"document_type": document_type},
        )
        raise PipelineError(f"Section generation failed: {e}") from e

    if not isinstance(generated, Mapping) or not isinstance(
        generated.get("sections"), Mapping
    ):
        raise PipelineError("Generator returned no sections object")

    final_sections: Dict[str, Any] = dict(generated["sections"])
    raw_metadata = generated.get("metadata")
    final_metadata: Optional[Dict[str, Any]] = (
        dict(raw_metadata) if isinstance(raw_metadata, Mapping) else None
    )

    if redactions:
        logger.info("Re-identifying model output with original values")
        final_sections = reidentify_sections(final_sections, redactions)
        final_metadata = reidentify_metadata(final_metadata, redactions)

    unresolved = _collect_unresolved(final_sections) + _collect_unresolved(
        final_metadata
    )
    if unresolved and not use_local_ai:
        logger.warning(
            "Placeholders left unresolved in model output",
            extra={"unresolved": sorted(set(unresolved))},
        )

    return ProcessedDocument(
        sections=final_sections,
        metadata=final_metadata,
        redaction_summary=summarize_redactions(redactions),
        redaction_count=len(redactions),
        deidentified=not use_local_ai,
        unresolved=unresolved,
    )
