"""
Tests for vidah/utils — structured logging, metrics collector, rate limiter, config.
"""
import json
import logging
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from fastapi import HTTPException

from vidah.config import Settings
from vidah.database import normalize_database_url
from vidah.utils.logging import StructuredJsonFormatter, correlation_id_ctx
from vidah.utils.metrics import RequestMetrics, Timer
from vidah.utils.rate_limiter import check_rate_limit, enforce_rate_limit


# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


class TestStructuredJsonFormatter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("vidah.test", logging.INFO, __file__, 1, "Conversão %s", ("ok",), None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_basic_fields(self):
        token = correlation_id_ctx.set("cid-1")
        try:
            line = json.loads(StructuredJsonFormatter().format(self._record()))
        finally:
            correlation_id_ctx.reset(token)

        assert line["level"] == "INFO"
        assert line["module"] == "vidah.test"
        assert line["message"] == "Conversão ok"
        assert line["correlation_id"] == "cid-1"

    def test_whitelisted_extras(self):
        line = json.loads(StructuredJsonFormatter().format(
            self._record(conversion_id=5, button_type="plan_subscription", secret="nope")
        ))
        assert line["conversion_id"] == 5
        assert line["button_type"] == "plan_subscription"
        assert "secret" not in line

    def test_error_field_is_structured(self):
        line = json.loads(StructuredJsonFormatter().format(
            self._record(method="POST", path="/track-whatsapp", status_code=500, error="pool exhausted")
        ))
        assert line["error"] == "pool exhausted"
        assert line["status_code"] == 500

    def test_non_ascii_kept(self):
        record = logging.LogRecord("vidah.test", logging.INFO, __file__, 1, "Lead de %s", ("Conceição",), None)
        assert "Conceição" in StructuredJsonFormatter().format(record)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class TestTimer:
    def test_unstarted_is_zero(self):
        assert Timer().elapsed_ms == 0

    def test_stop_returns_ms(self):
        timer = Timer().start()
        assert timer.stop() >= 0


class TestRequestMetrics:
    def test_counts(self):
        metrics = RequestMetrics()
        metrics.record(100, 200)
        metrics.record(300, 404)
        metrics.record(6000, 200)

        snap = metrics.snapshot()
        assert snap["requestCount"] == 3
        assert snap["errorCount"] == 1
        assert snap["slowRequests"] == 1
        assert snap["averageResponseTimeMs"] == pytest.approx(2133.33, abs=0.01)

    def test_average_window_is_last_100(self):
        metrics = RequestMetrics()
        for _ in range(100):
            metrics.record(1000, 200)
        for _ in range(100):
            metrics.record(10, 200)
        assert metrics.average_response_time_ms == 10

    def test_hourly_reset(self):
        metrics = RequestMetrics()
        metrics.record(10, 500)
        metrics.last_reset -= timedelta(hours=2)
        metrics.record(10, 200)
        assert metrics.request_count == 1
        assert metrics.error_count == 0


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_first_hit_sets_window(self, mock_redis, redis_pipeline):
        allowed, retry = await check_rate_limit("whatsapp", "1.2.3.4", 10, 300)
        assert allowed is True
        assert retry is None
        mock_redis.pipeline.assert_called_once_with(transaction=True)
        redis_pipeline.incr.assert_called_once_with("vidah:ratelimit:whatsapp:1.2.3.4")
        redis_pipeline.expire.assert_called_once_with("vidah:ratelimit:whatsapp:1.2.3.4", 300, nx=True)

    @pytest.mark.asyncio
    async def test_counter_and_ttl_sent_together(self, mock_redis, redis_pipeline):
        """INCR and EXPIRE go out in one MULTI, never as separate round trips."""
        redis_pipeline.execute.return_value = [5, False]
        allowed, _ = await check_rate_limit("whatsapp", "1.2.3.4", 10, 300)

        assert allowed is True
        redis_pipeline.execute.assert_awaited_once()
        mock_redis.incr.assert_not_called()
        mock_redis.expire.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_transaction_fails_open(self, redis_pipeline):
        redis_pipeline.execute.side_effect = ConnectionError("reset by peer")
        allowed, retry = await check_rate_limit("whatsapp", "1.2.3.4", 10, 300)
        assert allowed is True
        assert retry is None

    @pytest.mark.asyncio
    async def test_over_limit(self, mock_redis, redis_pipeline):
        redis_pipeline.execute.return_value = [11, False]
        mock_redis.ttl.return_value = 42
        allowed, retry = await check_rate_limit("whatsapp", "1.2.3.4", 10, 300)
        assert allowed is False
        assert retry == 42

    @pytest.mark.asyncio
    async def test_fails_open(self):
        """A Redis outage lets requests through."""
        with patch("vidah.utils.rate_limiter.get_redis", new_callable=AsyncMock, side_effect=ConnectionError("down")):
            allowed, retry = await check_rate_limit("login", "1.2.3.4", 5, 900)
        assert allowed is True

    @pytest.mark.asyncio
    async def test_enforce_raises_429(self, redis_pipeline):
        redis_pipeline.execute.return_value = [6, False]
        with pytest.raises(HTTPException) as exc_info:
            await enforce_rate_limit("login", "1.2.3.4", 5, 900)
        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "300"


# ---------------------------------------------------------------------------
# Config and database URL
# ---------------------------------------------------------------------------


class TestSettings:
    def test_token_secret_falls_back_to_session_secret(self):
        settings = Settings(session_secret="sess", jwt_secret="", _env_file=None)
        assert settings.token_secret == "sess"

    def test_cors_adds_localhost_outside_production(self):
        settings = Settings(session_secret="s", allowed_origins="https://a.example", app_env="development", _env_file=None)
        assert "https://a.example" in settings.cors_origins
        assert "http://localhost:5173" in settings.cors_origins

    def test_cors_production_only_configured(self):
        settings = Settings(session_secret="s", allowed_origins="https://a.example", app_env="production", _env_file=None)
        assert settings.cors_origins == ["https://a.example"]

    def test_whatsapp_default_number(self):
        settings = Settings(session_secret="s", _env_file=None)
        assert settings.whatsapp_phone == "5516993247676"


class TestNormalizeDatabaseUrl:
    @pytest.mark.parametrize("url,expected", [
        ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("sqlite:///./local.db", "sqlite+aiosqlite:///./local.db"),
    ])
    def test_mapping(self, url, expected):
        assert normalize_database_url(url) == expected
