# deid/core/loader.py

"""Configuration and pattern loader for the de-identification engine."""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional, Set

from deid.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

VALID_MODES = {"replace", "value", "template"}


class PatternLoader:
    """Singleton loader for the PHI pattern library and vocabulary.

    Loads configuration once from patterns.yaml and caches it for the
    application lifecycle. The cached data is read-only after loading.
    """

    _instance: Optional["PatternLoader"] = None
    _config: Dict[str, Any] = {}
    _loaded: bool = False
    _cached_stop_words: Set[str] = set()
    _cached_clinical_terms: Set[str] = set()

    def __new__(cls) -> "PatternLoader":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not PatternLoader._loaded:
            self._load_config()

    def _load_config(self) -> None:
        """Loads patterns.yaml from the module directory.

        Raises:
            ConfigurationError: If file is missing, invalid, or empty.
        """
        try:
            config_path = Path(__file__).parent / "patterns.yaml"

            if not config_path.exists():
                error_msg = f"Configuration file not found: {config_path}"
                logger.error(error_msg)
                raise ConfigurationError(error_msg)

            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if not config:
                raise ConfigurationError("Configuration file is empty or invalid")

            self._validate_config(config)
            PatternLoader._config = config

            # Stop words are compared case-insensitively
            stop_list = config.get("vocabulary", {}).get("stop_words", [])
            PatternLoader._cached_stop_words = {w.lower() for w in stop_list}

            clinical_list = config.get("vocabulary", {}).get("clinical_terms", [])
            PatternLoader._cached_clinical_terms = {w.lower() for w in clinical_list}

            PatternLoader._loaded = True
            logger.info(
                "Pattern configuration loaded successfully",
                extra={
                    "config_path": str(config_path),
                    "library_version": str(config.get("version")),
                    "pattern_count": len(config.get("patterns", [])),
                    "vocab_count": len(config.get("vocabulary", {})),
                },
            )

        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to parse patterns.yaml: {e}") from e
        except Exception as e:
            if isinstance(e, ConfigurationError):
                raise
            logger.error(f"Configuration loading failed: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    @staticmethod
    def _validate_config(config: Dict[str, Any]) -> None:
        """Validates required sections and the shape of every pattern entry.

        Raises:
            ConfigurationError: If required sections or pattern keys are missing.
        """
        required_sections = ["version", "patterns", "vocabulary"]
        missing = [s for s in required_sections if s not in config]

        if missing:
            error_msg = f"Missing required configuration sections: {missing}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        if not isinstance(config["patterns"], list):
            raise ConfigurationError("'patterns' must be an ordered list")

        for index, entry in enumerate(config["patterns"]):
            missing_keys = [
                k for k in ("name", "category", "regex", "replacement") if k not in entry
            ]
            if missing_keys:
                raise ConfigurationError(
                    f"Pattern #{index} is missing keys: {missing_keys}"
                )
            mode = entry["replacement"].get("mode")
            if mode not in VALID_MODES:
                raise ConfigurationError(
                    f"Pattern '{entry['name']}' has unknown replacement mode: {mode}"
                )

    @classmethod
    def get_instance(cls) -> "PatternLoader":
        """Returns the singleton instance of PatternLoader."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_version(self) -> str:
        """Returns the version string of the loaded pattern library."""
        return str(self._config.get("version", "unknown"))

    def get_patterns(self) -> List[Dict[str, Any]]:
        """Returns the pattern definitions in priority order.

        Returns:
            List of pattern dictionaries with 'name', 'category', 'regex'
            and 'replacement' keys, plus optional 'flags' and guard keys
        """
        patterns = self._config.get("patterns", [])
        return patterns if patterns else []

    def get_vocabulary(self, category: str) -> List[str]:
        """Retrieves vocabulary list by category name.

        Args:
            category: Vocabulary category (e.g., 'patient_label_skip_words')

        Returns:
            List of vocabulary terms, empty list if category not found
        """
        vocab = self._config.get("vocabulary", {}).get(category, [])
        return vocab if vocab else []

    def get_stop_words(self) -> Set[str]:
        """Returns the pre-computed, lower-cased set of narrative stop words."""
        return self._cached_stop_words

    def get_clinical_terms(self) -> Set[str]:
        """Returns the lower-cased set of clinical words that are never names."""
        return self._cached_clinical_terms
