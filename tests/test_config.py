"""
Tests for settings and structured logging.
"""

import json
import logging

import pytest
from pydantic import ValidationError as SettingsValidationError

from deid.logging_config import StructuredFormatter, configure_logging
from deid.service.config import Settings


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.ner_enabled is True
        assert s.ner_primary_model == "Davlan/bert-base-multilingual-cased-ner-hrl"
        assert s.ner_fallback_model == "dslim/bert-base-NER"
        assert s.ner_device == -1
        assert s.ner_min_score == 0.0

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("DEID_NER_ENABLED", "false")
        monkeypatch.setenv("DEID_NER_CHUNK_CHARS", "400")

        s = Settings()

        assert s.ner_enabled is False
        assert s.ner_chunk_chars == 400

    def test_blank_model_name_rejected(self):
        with pytest.raises(SettingsValidationError):
            Settings(ner_primary_model="   ")

    @pytest.mark.parametrize("score", [-0.1, 1.5])
    def test_min_score_bounds(self, score):
        with pytest.raises(SettingsValidationError):
            Settings(ner_min_score=score)

    def test_chunk_size_fits_model_window(self):
        assert Settings().ner_chunk_chars <= 510
        with pytest.raises(SettingsValidationError):
            Settings(ner_chunk_chars=1500)

    def test_chunk_size_floor(self):
        with pytest.raises(SettingsValidationError):
            Settings(ner_chunk_chars=50)


@pytest.mark.unit
class TestStructuredLogging:
    def _record(self, **extra):
        record = logging.LogRecord(
            "deid.test", logging.INFO, __file__, 10, "redacted %s", ("4",), None
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_fields(self):
        payload = json.loads(StructuredFormatter().format(self._record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "deid.test"
        assert payload["message"] == "redacted 4"
        assert "timestamp" in payload

    def test_extra_fields_included(self):
        record = self._record(redaction_count=4, unresolved=["[NAME]"])
        payload = json.loads(StructuredFormatter().format(record))

        assert payload["redaction_count"] == 4
        assert payload["unresolved"] == ["[NAME]"]
        assert "args" not in payload

    def test_configure_logging_installs_one_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("DEBUG", json_format=False)
            configure_logging("WARNING")

            assert len(root.handlers) == 1
            assert root.level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
