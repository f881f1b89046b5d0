# tests/unit/llm/test_model_catalog.py - v2
"""Tests for llm/model_catalog.py."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from visiontester.llm.model_catalog import ModelCatalog, filter_models
from visiontester.llm.models import ModelInfo

MODELS = [
    ModelInfo(name="qwen2.5vl:7b"),
    ModelInfo(name="llama3.2-vision:11b"),
    ModelInfo(name="deepseek-ocr:latest"),
    ModelInfo(name="minicpm-v:8b"),
    ModelInfo(name="qwen2.5:7b"),
]


def _transport() -> MagicMock:
    transport = MagicMock()
    transport.list_models = AsyncMock(return_value=list(MODELS))
    return transport


class TestFilterModels:
    def test_vision(self):
        names = [m.name for m in filter_models(MODELS, "vision")]
        assert names == ["qwen2.5vl:7b", "llama3.2-vision:11b"]

    def test_ocr(self):
        names = [m.name for m in filter_models(MODELS, "ocr")]
        assert names == ["llama3.2-vision:11b", "deepseek-ocr:latest", "minicpm-v:8b"]

    def test_parse_excludes_vision_models(self):
        names = [m.name for m in filter_models(MODELS, "parse")]
        assert "qwen2.5vl:7b" not in names
        assert "qwen2.5:7b" in names

    def test_no_kind_returns_all(self):
        assert filter_models(MODELS, None) == MODELS


class TestModelCatalog:
    @pytest.mark.asyncio
    async def test_cached_within_ttl(self):
        transport = _transport()
        catalog = ModelCatalog(transport, ttl_s=30)

        await catalog.list_models()
        await catalog.list_models(kind="vision")

        assert transport.list_models.await_count == 1

    @pytest.mark.asyncio
    async def test_refetched_after_ttl(self):
        transport = _transport()
        catalog = ModelCatalog(transport, ttl_s=0)

        await catalog.list_models()
        await catalog.list_models()

        assert transport.list_models.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh(self):
        transport = _transport()
        catalog = ModelCatalog(transport)

        await catalog.list_models()
        await catalog.list_models(force_refresh=True)
        await catalog.list_models()

        assert transport.list_models.await_count == 2
