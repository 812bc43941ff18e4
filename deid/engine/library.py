# deid/engine/library.py

"""Compiled PHI pattern library built from patterns.yaml."""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from deid.core.exceptions import ConfigurationError
from deid.core.loader import PatternLoader

logger = logging.getLogger(__name__)

_FLAG_NAMES: Dict[str, int] = {
    "IGNORECASE": re.IGNORECASE,
    "MULTILINE": re.MULTILINE,
    "DOTALL": re.DOTALL,
}

_LIBRARY_CACHE: Dict[str, "PatternLibrary"] = {}


class ReplacementStrategy:
    """Base class for the placeholder text produced for a match."""

    def render(self, match: re.Match) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class ConstantReplacement(ReplacementStrategy):
    """Replaces the whole match with fixed text (e.g. "Dr. [PROVIDER]")."""

    text: str

    def render(self, match: re.Match) -> str:
        return self.text


@dataclass(frozen=True)
class ValueReplacement(ReplacementStrategy):
    """Swaps only the value group for a placeholder, keeping any label."""

    placeholder: str

    def render(self, match: re.Match) -> str:
        if "value" not in match.re.groupindex:
            return self.placeholder

        offset = match.start()
        whole = match.group(0)
        return (
            whole[: match.start("value") - offset]
            + self.placeholder
            + whole[match.end("value") - offset :]
        )


@dataclass(frozen=True)
class TemplateReplacement(ReplacementStrategy):
    """Formats a template from the match's named groups.

    Groups that did not participate in the match render as empty strings.
    """

    template: str

    def render(self, match: re.Match) -> str:
        groups = {k: v or "" for k, v in match.groupdict().items()}
        return self.template.format(**groups)


@dataclass(frozen=True)
class PhiPattern:
    """A single detector: category, matcher and placeholder producer."""

    name: str
    category: str
    regex: re.Pattern
    replacement: ReplacementStrategy
    skip_words: FrozenSet[str] = field(default_factory=frozenset)
    use_stop_words: bool = False
    use_clinical_terms: bool = False

    def value_of(self, match: re.Match) -> str:
        """Returns the identifier portion of a match."""
        if "value" in self.regex.groupindex and match.group("value") is not None:
            return match.group("value")
        return match.group(0)

    def is_guarded(
        self,
        value: str,
        stop_words: FrozenSet[str],
        clinical_terms: FrozenSet[str] = frozenset(),
    ) -> bool:
        """True when the match must be left untouched.

        A value that already holds placeholder brackets is never rewritten,
        so no detector can wrap an existing placeholder in a new one.
        """
        if "[" in value or "]" in value:
            return True

        lowered = value.lower()
        if self.skip_words and any(word in lowered for word in self.skip_words):
            return True

        words = lowered.split()
        if self.use_stop_words and words and words[0] in stop_words:
            return True

        # Whole words only: "Chester" is a name, "Chest Pain" is not
        if self.use_clinical_terms and any(w in clinical_terms for w in words):
            return True

        return False


@dataclass(frozen=True)
class PatternLibrary:
    """Ordered, versioned collection of detectors."""

    version: str
    patterns: List[PhiPattern]
    stop_words: FrozenSet[str] = field(default_factory=frozenset)
    clinical_terms: FrozenSet[str] = field(default_factory=frozenset)

    def __iter__(self):
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)


def _build_replacement(name: str, config: Dict[str, str]) -> ReplacementStrategy:
    mode = config.get("mode")
    try:
        if mode == "replace":
            return ConstantReplacement(text=config["text"])
        if mode == "value":
            return ValueReplacement(placeholder=config["placeholder"])
        if mode == "template":
            return TemplateReplacement(template=config["template"])
    except KeyError as e:
        raise ConfigurationError(
            f"Pattern '{name}' replacement is missing key {e}"
        ) from e

    raise ConfigurationError(f"Pattern '{name}' has unknown replacement mode: {mode}")


def _compile(definition: Dict, loader: PatternLoader) -> PhiPattern:
    name = definition["name"]

    flags = 0
    for flag_name in definition.get("flags", []) or []:
        if flag_name not in _FLAG_NAMES:
            raise ConfigurationError(f"Pattern '{name}' has unknown flag: {flag_name}")
        flags |= _FLAG_NAMES[flag_name]

    try:
        regex = re.compile(definition["regex"], flags)
    except re.error as e:
        logger.error(f"Failed to compile pattern '{name}': {e}")
        raise ConfigurationError(f"Invalid regex for pattern '{name}': {e}") from e

    skip_key: Optional[str] = definition.get("skip_words")
    skip_words = frozenset(
        w.lower() for w in loader.get_vocabulary(skip_key)
    ) if skip_key else frozenset()

    return PhiPattern(
        name=name,
        category=definition["category"],
        regex=regex,
        replacement=_build_replacement(name, definition["replacement"]),
        skip_words=skip_words,
        use_stop_words=bool(definition.get("stop_words", False)),
        use_clinical_terms=bool(definition.get("clinical_terms", False)),
    )


def build_pattern_library() -> PatternLibrary:
    """Returns the compiled pattern library, compiling it on first use.

    Raises:
        ConfigurationError: If a pattern definition cannot be compiled.
    """
    loader = PatternLoader.get_instance()
    version = loader.get_version()

    if version in _LIBRARY_CACHE:
        return _LIBRARY_CACHE[version]

    patterns = [_compile(d, loader) for d in loader.get_patterns()]
    library = PatternLibrary(
        version=version,
        patterns=patterns,
        stop_words=frozenset(loader.get_stop_words()),
        clinical_terms=frozenset(loader.get_clinical_terms()),
    )

    _LIBRARY_CACHE[version] = library
    logger.info(
        f"Compiled {len(patterns)} PHI patterns",
        extra={"library_version": version},
    )
    return library
