# deid/engine/ner_pass.py

"""Entity-recognition pass that catches names, places and organizations the
regex library missed."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from deid.core.definitions import NER_LABEL_MAPPING, PLACEHOLDER_PATTERN
from deid.core.domain import DeidentifyResult, RedactionRecord
from deid.engine.ner_model import NerModelLoader, NerPipeline
from deid.service.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EntitySpan:
    """A merged run of tokens sharing one entity label."""

    label: str
    start: int
    end: int
    score: float
    last_position: Tuple[int, int]


def _split_tag(tag: str) -> Tuple[str, str]:
    """Splits an IOB tag into (prefix, label): 'B-PER' -> ('B', 'PER')."""
    if "-" in tag:
        prefix, label = tag.split("-", 1)
        return prefix.upper(), label.upper()
    return "B", tag.upper()


def chunk_text(text: str, max_chars: int) -> Iterator[Tuple[int, str]]:
    """Yields (offset, chunk) pairs of at most max_chars, split at line breaks
    where possible so entities are not cut in half."""
    start = 0
    length = len(text)

    while start < length:
        end = min(start + max_chars, length)
        if end < length:
            newline = text.rfind("\n", start, end)
            if newline > start:
                end = newline + 1
            else:
                space = text.rfind(" ", start, end)
                if space > start:
                    end = space + 1
        yield start, text[start:end]
        start = end


def merge_token_entities(
    tokens: Iterable[Dict[str, Any]], min_score: float = 0.0
) -> List[EntitySpan]:
    """Merges token predictions into contiguous entity spans.

    Only PER, LOC and ORG tokens are considered. A token extends the current
    span when it carries the same label, directly follows the previous token,
    and is either an I- continuation or a '##' word piece. Anything else
    closes the current span and starts a new one.

    Tokens need 'entity', 'start' and 'end' keys; 'index', 'word', 'score'
    and 'chunk' are used when present.
    """
    spans: List[EntitySpan] = []
    current: Optional[EntitySpan] = None

    for token in tokens:
        prefix, label = _split_tag(str(token.get("entity") or token.get("entity_group") or "O"))
        if label not in NER_LABEL_MAPPING:
            continue

        start, end = token.get("start"), token.get("end")
        if start is None or end is None:
            continue

        score = float(token.get("score", 1.0))
        if score < min_score:
            continue

        index = token.get("index")
        position = (int(token.get("chunk", 0)), int(index) if index is not None else -1)
        is_word_piece = str(token.get("word", "")).startswith("##")

        adjacent = (
            current is not None
            and index is not None
            and position[0] == current.last_position[0]
            and position[1] == current.last_position[1] + 1
        )

        if current is not None and adjacent and current.label == label and (
            prefix == "I" or is_word_piece
        ):
            current.end = int(end)
            current.score = min(current.score, score)
            current.last_position = position
            continue

        if current is not None:
            spans.append(current)
        current = EntitySpan(
            label=label,
            start=int(start),
            end=int(end),
            score=score,
            last_position=position,
        )

    if current is not None:
        spans.append(current)

    return spans


def find_protected_zones(text: str) -> List[Tuple[int, int]]:
    """Returns the (start, end) spans of placeholders already in the text."""
    return [(m.start(), m.end()) for m in PLACEHOLDER_PATTERN.finditer(text)]


def _overlaps(span: EntitySpan, zones: Sequence[Tuple[int, int]]) -> bool:
    # Interval A overlaps B if A.start < B.end and A.end > B.start
    for zone_start, zone_end in zones:
        if zone_start >= span.end:
            break
        if span.start < zone_end and span.end > zone_start:
            return True
    return False


def apply_entity_redactions(
    result: DeidentifyResult, spans: Sequence[EntitySpan]
) -> DeidentifyResult:
    """Replaces surviving entity spans with category placeholders.

    Spans overlapping an existing placeholder, shorter than two characters,
    or that look like a placeholder themselves are discarded. Replacement
    runs from the end of the text backwards so earlier offsets stay valid;
    the new records are appended to the ledger in forward order.
    """
    text = result.text
    zones = find_protected_zones(text)

    survivors: List[EntitySpan] = []
    for span in spans:
        original = text[span.start : span.end]
        if len(original.strip()) < 2:
            continue
        if original.startswith("[") and original.endswith("]"):
            continue
        if _overlaps(span, zones):
            logger.debug(
                "Discarding entity overlapping an existing placeholder",
                extra={"label": span.label, "start": span.start},
            )
            continue
        survivors.append(span)

    if not survivors:
        return result

    redacted = text
    new_records: List[RedactionRecord] = []

    for span in sorted(survivors, key=lambda s: s.start, reverse=True):
        category, placeholder = NER_LABEL_MAPPING[span.label]
        original = text[span.start : span.end]

        new_records.append(
            RedactionRecord(
                category=category,
                original=original,
                replacement=placeholder,
                start=span.start,
                end=span.end,
                value=original,
                rule_name="entity_recognition",
            )
        )
        redacted = redacted[: span.start] + placeholder + redacted[span.end :]

    new_records.reverse()
    return DeidentifyResult(
        text=redacted, redactions=tuple(result.redactions) + tuple(new_records)
    )


def _predict(ner: NerPipeline, text: str, max_chars: int) -> List[Dict[str, Any]]:
    """Runs the model chunk by chunk and shifts offsets back into ``text``."""
    tokens: List[Dict[str, Any]] = []

    for chunk_no, (offset, chunk) in enumerate(chunk_text(text, max_chars)):
        if not chunk.strip():
            continue
        for token in ner(chunk) or []:
            shifted = dict(token)
            if shifted.get("start") is not None:
                shifted["start"] = int(shifted["start"]) + offset
            if shifted.get("end") is not None:
                shifted["end"] = int(shifted["end"]) + offset
            shifted["chunk"] = chunk_no
            tokens.append(shifted)

    return tokens


async def augment_with_ner(
    result: DeidentifyResult, loader: NerModelLoader
) -> DeidentifyResult:
    """Adds entity-recognition redactions on top of a regex pass result.

    Never raises: if the model cannot be loaded or inference fails, the
    regex-only result is returned unchanged.
    """
    if not result.text:
        return result

    try:
        ner = await loader.aget()
        tokens = await asyncio.to_thread(
            _predict, ner, result.text, settings.ner_chunk_chars
        )
        spans = merge_token_entities(tokens, min_score=settings.ner_min_score)
        augmented = apply_entity_redactions(result, spans)

    except Exception:
        logger.error(
            "Entity recognition failed, continuing with regex-only results",
            exc_info=True,
            extra={"redaction_count": len(result.redactions)},
        )
        return result

    logger.debug(
        "Entity-recognition pass completed",
        extra={
            "entity_count": len(augmented.redactions) - len(result.redactions),
            "model": loader.model_name,
        },
    )
    return augmented
