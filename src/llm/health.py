# src/llm/health.py - v2
"""Inference server connectivity check with operator guidance.

Errors never propagate out of ping(); they are folded into a
HealthCheckResult so the CLI can print actionable steps.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Literal

import ollama

logger = logging.getLogger(__name__)

HealthErrorCode = Literal["TIMEOUT", "CONNECTION_REFUSED", "HTTP_ERROR", "UNKNOWN"]

DEFAULT_HEALTH_TIMEOUT_S = 5.0


@dataclass(frozen=True)
class HealthError:
    code: HealthErrorCode
    message: str
    guidance: tuple[str, ...] = ()

    def format_guidance(self) -> str:
        if not self.guidance:
            return "Check that Ollama is installed and running."
        return "\n".join(f"{i}. {step}" for i, step in enumerate(self.guidance, 1))


@dataclass(frozen=True)
class HealthCheckResult:
    success: bool
    status: str | None = None
    error: HealthError | None = None


@dataclass(frozen=True)
class RetryConfig:
    """Backoff configuration for repeated health checks."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Delay after a failed attempt (0-based): 1s, 2s, 4s with the defaults."""
    return config.base_delay_s * (config.backoff_factor ** attempt)


def http_error(status_code: int) -> HealthError:
    return HealthError(
        code="HTTP_ERROR",
        message=f"Ollama returned status {status_code}",
        guidance=(
            "Ollama server may be misconfigured",
            "Check Ollama logs for errors",
            "Try restarting Ollama",
        ),
    )


def parse_connection_error(error: BaseException, host: str = "localhost:11434") -> HealthError:
    """Map a health check failure to a HealthError."""
    name = type(error).__name__.lower()
    msg = str(error).lower()

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)) or "timeout" in name:
        return HealthError(
            code="TIMEOUT",
            message="Connection timeout",
            guidance=(
                "Check if Ollama is responding (may be busy processing)",
                f"Verify firewall settings allow {host}",
                "Try restarting Ollama",
            ),
        )
    if isinstance(error, ollama.ResponseError):
        return http_error(error.status_code)
    if isinstance(error, ConnectionError) or "connect" in msg or "refused" in msg:
        return HealthError(
            code="CONNECTION_REFUSED",
            message="Ollama server is not running",
            guidance=(
                "Start Ollama: Open Ollama app or run `ollama serve`",
                f"Verify Ollama is running on {host}",
                "Check if another application is using the port",
            ),
        )
    return HealthError(
        code="UNKNOWN",
        message="Failed to connect to Ollama",
        guidance=(
            "Verify Ollama is installed and running",
            "Run with -v (--verbose) for detailed error messages",
        ),
    )


async def ping(
    host: str,
    timeout_s: float = DEFAULT_HEALTH_TIMEOUT_S,
    client: Any = None,
) -> HealthCheckResult:
    """Query the model-listing endpoint with a short timeout."""
    client = client or ollama.AsyncClient(host=host, timeout=timeout_s)
    try:
        await asyncio.wait_for(client.list(), timeout=timeout_s)
    except Exception as e:
        logger.debug("Health check to %s failed: %r", host, e)
        return HealthCheckResult(success=False, error=parse_connection_error(e, host))
    return HealthCheckResult(success=True, status="online")


async def check_health_with_retry(
    host: str,
    timeout_s: float = DEFAULT_HEALTH_TIMEOUT_S,
    config: RetryConfig | None = None,
    client: Any = None,
) -> HealthCheckResult:
    """Ping until success or ``config.max_retries`` attempts are used up."""
    config = config or RetryConfig()
    result = HealthCheckResult(success=False)
    for attempt in range(config.max_retries):
        result = await ping(host, timeout_s=timeout_s, client=client)
        if result.success or attempt + 1 >= config.max_retries:
            return result
        delay = _compute_delay(config, attempt)
        logger.warning(
            "Health check failed (attempt %d/%d), retrying in %.1fs",
            attempt + 1, config.max_retries, delay,
        )
        await asyncio.sleep(delay)
    return result
