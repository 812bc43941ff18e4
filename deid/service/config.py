# deid/service/config.py

"""Application configuration using Pydantic Settings.

Manages environment variables, defaults, and validation rules.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings.

    Loads values from environment variables (prefix 'DEID_') or .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEID_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Entity recognition
    ner_enabled: bool = Field(
        default=True,
        description="Run the entity-recognition pass after the regex pass.",
    )

    ner_primary_model: str = Field(
        default="Davlan/bert-base-multilingual-cased-ner-hrl",
        description="Multilingual token-classification model tried first.",
    )

    ner_fallback_model: str = Field(
        default="dslim/bert-base-NER",
        description="English-only model used when the primary fails to load.",
    )

    ner_device: int = Field(
        default=-1,
        ge=-1,
        description="Inference device: -1 for CPU, otherwise a CUDA device index.",
    )

    ner_min_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Minimum token score (0.0-1.0) kept before span merging.",
    )

    # At most 510 characters fit BERT's 512-token window with [CLS]/[SEP]:
    # every word piece covers at least one input character.
    ner_chunk_chars: int = Field(
        default=500,
        ge=200,
        le=510,
        description="Maximum characters per inference chunk.",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root logging level.")

    log_json: bool = Field(
        default=True, description="Emit structured JSON log lines."
    )

    @field_validator("ner_primary_model", "ner_fallback_model")
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        """Ensure model name is not empty."""
        if not v.strip():
            raise ValueError("NER model name cannot be empty")
        return v


# Singleton settings instance
settings = Settings()
