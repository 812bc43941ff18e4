# deid/core/exceptions.py

"""Exceptions raised while protecting clinical text.

Only configuration and input errors reach callers of ``deidentify``. Model
failures are absorbed by the entity-recognition pass, which falls back to
regex-only redaction; processing failures surface from ``process_document``
before any model output is re-identified.
"""

from typing import Sequence


class DeidentificationError(Exception):
    """Base class for every error raised by the de-identification engine."""

    pass


class ConfigurationError(DeidentificationError):
    """patterns.yaml is missing, malformed, or holds a regex that will not compile."""

    pass


class ModelUnavailableError(DeidentificationError):
    """Neither the primary nor the fallback entity-recognition model loaded.

    Attributes:
        models: Model names tried, in order
    """

    def __init__(self, message: str, models: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.models = tuple(models)


class PipelineError(DeidentificationError):
    """The language-model step of document processing failed, timed out, or
    returned no sections; nothing was re-identified."""

    pass


class ValidationError(DeidentificationError):
    """Text handed to de-identification is neither a string nor None."""

    pass
