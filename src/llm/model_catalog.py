# src/llm/model_catalog.py - v2
"""Installed-model listing with a short-lived cache and role filters."""

from __future__ import annotations

import logging
import time
from typing import Literal

from visiontester.llm.base_transport import BaseTransport
from visiontester.llm.models import ModelInfo

logger = logging.getLogger(__name__)

ModelKind = Literal["vision", "ocr", "parse"]

VISION_PATTERNS: tuple[str, ...] = ("vl", "vision", "llava")
OCR_PATTERNS: tuple[str, ...] = ("ocr", "minicpm", "vision")


def _matches(name: str, patterns: tuple[str, ...]) -> bool:
    lowered = name.lower()
    return any(p in lowered for p in patterns)


def filter_models(models: list[ModelInfo], kind: ModelKind | None) -> list[ModelInfo]:
    """Filter by role. Parse models are the text-only ones."""
    if kind == "vision":
        return [m for m in models if _matches(m.name, VISION_PATTERNS)]
    if kind == "ocr":
        return [m for m in models if _matches(m.name, OCR_PATTERNS)]
    if kind == "parse":
        return [m for m in models if not _matches(m.name, VISION_PATTERNS)]
    return list(models)


class ModelCatalog:
    """Caches the server's model list for ``ttl_s`` seconds."""

    def __init__(self, transport: BaseTransport, ttl_s: float = 30.0) -> None:
        self._transport = transport
        self._ttl_s = ttl_s
        self._cached: list[ModelInfo] | None = None
        self._fetched_at = 0.0

    async def list_models(
        self, kind: ModelKind | None = None, force_refresh: bool = False,
    ) -> list[ModelInfo]:
        now = time.monotonic()
        if (
            force_refresh
            or self._cached is None
            or now - self._fetched_at >= self._ttl_s
        ):
            self._cached = await self._transport.list_models()
            self._fetched_at = now
            logger.debug("Fetched %d models", len(self._cached))
        return filter_models(self._cached, kind)
