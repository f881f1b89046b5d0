# tests/unit/tracking/test_usage.py - v1
"""Tests for tracking/usage.py."""

from __future__ import annotations

from visiontester.tracking.usage import TurnUsage, UsageLogger, sum_usage

from tests.fakes import make_response


class TestSumUsage:
    def test_missing_counts_as_zero(self):
        total = sum_usage(
            TurnUsage(prompt_tokens=100, completion_tokens=None, total_duration=10),
            TurnUsage(prompt_tokens=None, completion_tokens=20, total_duration=5),
        )

        assert total == TurnUsage(prompt_tokens=100, completion_tokens=20, total_duration=15)

    def test_no_turns(self):
        assert sum_usage() == TurnUsage()

    def test_from_response(self):
        usage = TurnUsage.from_response(make_response("{}", 7, 3, 99))
        assert usage == TurnUsage(prompt_tokens=7, completion_tokens=3, total_duration=99)


class TestUsageLogger:
    def test_records_turns(self):
        usage_logger = UsageLogger()

        usage_logger.record("ocr", "deepseek-ocr", make_response("text", 10, 5), latency_ms=120)
        usage_logger.record("parse", "qwen2.5:7b", make_response("{}", 20, 8), latency_ms=80)

        assert usage_logger.total_calls == 2
        assert usage_logger.total.prompt_tokens == 30
        assert usage_logger.total.completion_tokens == 13
        assert [r.step for r in usage_logger.records] == ["ocr", "parse"]

    def test_failed_turns_excluded_from_total(self):
        usage_logger = UsageLogger()

        usage_logger.record("direct", "m", make_response("{}", 10, 5))
        failed = usage_logger.record("direct", "m", status="error")

        assert failed.usage == TurnUsage()
        assert usage_logger.total_calls == 2
        assert usage_logger.total.prompt_tokens == 10

    def test_records_is_a_copy(self):
        usage_logger = UsageLogger()
        usage_logger.record("direct", "m")
        usage_logger.records.clear()
        assert usage_logger.total_calls == 1
