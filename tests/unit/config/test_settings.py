# tests/unit/config/test_settings.py - v3
"""Tests for config/settings.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from visiontester.config.settings import (
    DEFAULT_OCR_SYSTEM_PROMPT,
    ConfigurationError,
    Settings,
    load_settings,
)


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)  # type: ignore[call-arg]


class TestDefaults:
    def test_defaults(self):
        s = _settings()

        assert s.ollama_base_url == "http://localhost:11434"
        assert s.ledger_backend == "json"
        assert s.ledger_keep_runs == 500
        assert s.require_schema is False
        assert s.ledger_retain_documents is False
        assert s.max_file_size_bytes == 20 * 1024 * 1024
        assert s.warn_file_size_bytes == 1024 * 1024

    def test_ledger_path_expands_user(self):
        s = _settings(ledger_root=Path("~/runs"))
        assert "~" not in str(s.ledger_path)

    def test_schema_library_beside_ledger_root(self, tmp_path):
        s = _settings(ledger_root=tmp_path / "runs")
        assert s.schema_library_file == tmp_path / "schemas.json"

    def test_schema_library_path_override(self, tmp_path):
        s = _settings(schema_library_path=tmp_path / "lib" / "mine.json")
        assert s.schema_library_file == tmp_path / "lib" / "mine.json"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434")
        monkeypatch.setenv("LEDGER_BACKEND", "sqlite")

        s = _settings()

        assert s.ollama_base_url == "http://gpu-box:11434"
        assert s.ledger_backend == "sqlite"

    def test_load_settings_overrides(self):
        s = load_settings(_env_file=None, default_model="llava:13b")
        assert s.default_model == "llava:13b"


class TestValidation:
    def test_temperature_range(self):
        with pytest.raises(ValueError):
            _settings(direct_temperature=2.5)

    def test_token_limits_positive(self):
        with pytest.raises(ValueError):
            _settings(parse_max_tokens=0)

    def test_warn_above_max(self):
        with pytest.raises(ConfigurationError, match="WARN_FILE_SIZE_MB"):
            _settings(max_file_size_mb=1, warn_file_size_mb=5)

    def test_bad_rotation(self):
        with pytest.raises(ConfigurationError, match="LOG_ROTATION"):
            _settings(log_rotation="huge")

    def test_errors_are_collected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            _settings(ledger_keep_runs=0, ollama_base_url=" ")
        assert "LEDGER_KEEP_RUNS" in str(exc_info.value)
        assert "OLLAMA_BASE_URL" in str(exc_info.value)


class TestDefaultParameters:
    def test_direct(self):
        s = _settings(direct_temperature=0.3, direct_max_tokens=1000)

        params = s.default_parameters("direct-multimodal", output_schema={"type": "object"})

        assert params.temperature == 0.3
        assert params.max_tokens == 1000
        assert params.system_prompt == s.direct_system_prompt
        assert params.output_schema == {"type": "object"}
        assert params.ocr_step is None

    def test_ocr_then_parse(self):
        s = _settings(ocr_max_tokens=777, parse_num_ctx=4096)

        params = s.default_parameters("ocr-then-parse", schema_id="invoice")

        assert params.num_ctx == 4096
        assert params.user_prompt == s.parse_user_prompt
        assert params.schema_id == "invoice"
        assert params.ocr_step.system_prompt == DEFAULT_OCR_SYSTEM_PROMPT
        assert params.ocr_step.max_tokens == 777
