# src/config/settings.py - v3
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for the inference server address, model defaults,
sampling defaults per pipeline step, run ledger storage and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from visiontester.core.models import OcrStepParameters, PipelineKind, RunParameters
from visiontester.logging.handlers import parse_size

DEFAULT_SYSTEM_PROMPT = """You are a structured data extraction assistant. Your task is to extract information from documents and output valid JSON that strictly conforms to the provided schema.

Rules:
- Output ONLY valid JSON, no explanations or additional text
- Use null for missing or unclear fields
- Use ISO-8601 format for dates (YYYY-MM-DD)
- Use numbers (not strings) for all numeric values
- Preserve original text accuracy"""

DEFAULT_USER_PROMPT = (
    "Extract all fields from this document according to the schema. "
    "Be precise and accurate."
)

DEFAULT_OCR_SYSTEM_PROMPT = (
    "Extract all visible text from this document. Preserve the layout and "
    "structure. Output the text exactly as it appears."
)

DEFAULT_OCR_USER_PROMPT = "Extract text from this document."

DEFAULT_PARSE_SYSTEM_PROMPT = """You are a structured data extraction assistant. Your task is to parse text and output valid JSON that strictly conforms to the provided schema.

Rules:
- Output ONLY valid JSON, no explanations
- Use null for missing fields
- Use ISO-8601 for dates (YYYY-MM-DD)
- Use numbers (not strings) for numeric values
- Preserve original text accuracy"""

DEFAULT_PARSE_USER_PROMPT = (
    "Parse the following text according to the schema. Be precise and accurate."
)


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === INFERENCE SERVER ===
    ollama_base_url: str = "http://localhost:11434"
    request_timeout_s: float | None = None
    health_check_timeout_s: float = 5.0
    model_cache_ttl_s: float = 30.0

    # === MODELS ===
    default_model: str = "qwen2.5vl:7b"
    ocr_model: str = "deepseek-ocr"
    parse_model: str = "qwen2.5:7b"

    # === Direct pipeline ===
    direct_temperature: float = 0.0
    direct_max_tokens: int = 4096
    direct_num_ctx: int = 8192
    direct_system_prompt: str = DEFAULT_SYSTEM_PROMPT
    direct_user_prompt: str = DEFAULT_USER_PROMPT

    # === OCR step ===
    ocr_temperature: float = 0.0
    ocr_max_tokens: int = 2048
    ocr_num_ctx: int = 4096
    ocr_system_prompt: str = DEFAULT_OCR_SYSTEM_PROMPT
    ocr_user_prompt: str = DEFAULT_OCR_USER_PROMPT

    # === Parse step ===
    parse_temperature: float = 0.0
    parse_max_tokens: int = 4096
    parse_num_ctx: int = 8192
    parse_system_prompt: str = DEFAULT_PARSE_SYSTEM_PROMPT
    parse_user_prompt: str = DEFAULT_PARSE_USER_PROMPT

    # === Pipeline ===
    require_schema: bool = False

    # === Run ledger ===
    ledger_backend: Literal["json", "sqlite"] = "json"
    ledger_root: Path = Path("~/.visiontester/runs")
    ledger_keep_runs: int = 500
    ledger_retain_documents: bool = False

    # === Schema library ===
    schema_library_path: Path | None = None

    # === File intake ===
    max_file_size_mb: float = 20.0
    warn_file_size_mb: float = 1.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("direct_temperature", "ocr_temperature", "parse_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("temperature must be between 0 and 2")
        return v

    @field_validator(
        "direct_max_tokens", "ocr_max_tokens", "parse_max_tokens",
        "direct_num_ctx", "ocr_num_ctx", "parse_num_ctx",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("token limits must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.warn_file_size_mb > self.max_file_size_mb:
            errors.append("WARN_FILE_SIZE_MB must be <= MAX_FILE_SIZE_MB")

        if not str(self.ledger_root).strip():
            errors.append("LEDGER_ROOT must not be empty")

        if self.ledger_keep_runs < 1:
            errors.append("LEDGER_KEEP_RUNS must be >= 1")

        if not self.ollama_base_url.strip():
            errors.append("OLLAMA_BASE_URL must not be empty")

        try:
            parse_size(self.log_rotation)
        except ValueError as e:
            errors.append(f"LOG_ROTATION: {e}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @property
    def warn_file_size_bytes(self) -> int:
        return int(self.warn_file_size_mb * 1024 * 1024)

    @property
    def ledger_path(self) -> Path:
        return self.ledger_root.expanduser()

    @property
    def schema_library_file(self) -> Path:
        """SCHEMA_LIBRARY_PATH, or schemas.json beside the ledger root."""
        if self.schema_library_path is not None:
            return self.schema_library_path.expanduser()
        return self.ledger_path.parent / "schemas.json"

    def default_parameters(
        self,
        pipeline: PipelineKind,
        output_schema: dict[str, Any] | None = None,
        schema_id: str | None = None,
    ) -> RunParameters:
        """Parameter snapshot for a pipeline from the configured defaults."""
        if pipeline == "ocr-then-parse":
            return RunParameters(
                temperature=self.parse_temperature,
                max_tokens=self.parse_max_tokens,
                num_ctx=self.parse_num_ctx,
                system_prompt=self.parse_system_prompt,
                user_prompt=self.parse_user_prompt,
                output_schema=output_schema,
                schema_id=schema_id,
                ocr_step=OcrStepParameters(
                    system_prompt=self.ocr_system_prompt,
                    user_prompt=self.ocr_user_prompt,
                    temperature=self.ocr_temperature,
                    max_tokens=self.ocr_max_tokens,
                    num_ctx=self.ocr_num_ctx,
                ),
            )
        return RunParameters(
            temperature=self.direct_temperature,
            max_tokens=self.direct_max_tokens,
            num_ctx=self.direct_num_ctx,
            system_prompt=self.direct_system_prompt,
            user_prompt=self.direct_user_prompt,
            output_schema=output_schema,
            schema_id=schema_id,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
