"""
Tests for settings parsing, the usage helpers and the sweep job.
"""

from datetime import datetime, timedelta, timezone

import pytest

from backend.app.core.config import Settings, _parse_cors_origins
from backend.app.core.rate_limit import DailyRateLimiter
from backend.app.services import usage
from backend.app.storage.postgres import is_active_subscription, normalize_status
from backend.app.worker import SWEEP_JOB_ID, create_scheduler, sweep_rate_limits


class TestSettings:
    @pytest.mark.parametrize("raw,expected", [
        ('["https://a.com","https://b.com"]', ["https://a.com", "https://b.com"]),
        ("['https://a.com']", ["https://a.com"]),
        ("https://a.com, https://b.com", ["https://a.com", "https://b.com"]),
        ("https://a.com", ["https://a.com"]),
        ("", ["https://www.linkedin.com", "https://linkedin.com"]),
    ])
    def test_parse_cors_origins(self, raw, expected):
        assert _parse_cors_origins(raw) == expected

    def test_cors_env_is_read_raw(self, monkeypatch):
        monkeypatch.setenv("DRIPCHECK_CORS_ORIGINS", "https://x.com,https://y.com")
        assert Settings(environment="production").cors_origins_list == ["https://x.com", "https://y.com"]

    def test_unprefixed_platform_variables(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("DATABASE_URL", "postgresql://db/dripcheck")
        settings = Settings()
        assert settings.port == 8080
        assert settings.database_url == "postgresql://db/dripcheck"

    def test_dev_bypass_requires_development(self):
        assert Settings(environment="development", dev_premium_bypass=True).premium_bypass_active
        assert not Settings(environment="production", dev_premium_bypass=True).premium_bypass_active
        assert not Settings(environment="development", dev_premium_bypass=False).premium_bypass_active

    def test_llm_api_key_follows_provider(self):
        settings = Settings(llm_provider="openai", openai_api_key="sk-o", anthropic_api_key="sk-a")
        assert settings.llm_api_key == "sk-o"
        assert Settings(llm_provider="anthropic", anthropic_api_key="sk-a").llm_api_key == "sk-a"


class TestSubscriptionState:
    @pytest.mark.parametrize("raw,expected", [
        ("active", "active"),
        ("trialing", "active"),
        ("canceled", "cancelled"),
        ("CANCELLED", "cancelled"),
        ("free", "free"),
        (None, "free"),
        ("weird", "free"),
    ])
    def test_normalize_status(self, raw, expected):
        assert normalize_status(raw) == expected

    def test_cancelled_until_period_end(self):
        now = datetime(2026, 5, 1, tzinfo=timezone.utc)
        user = {"subscription_status": "cancelled", "subscription_period_end": now + timedelta(days=1)}
        assert is_active_subscription(user, now=now)
        assert not is_active_subscription(user, now=now + timedelta(days=2))

    def test_missing_user_is_inactive(self):
        assert not is_active_subscription(None)
        assert not is_active_subscription({"subscription_status": "free"})


class TestUsageHelpers:
    @pytest.mark.asyncio
    async def test_noop_without_database(self):
        assert await usage.lookup_subscription("u1") is None
        await usage.record_usage("u1", "humanize", {"inputLength": 1})

    @pytest.mark.asyncio
    async def test_record_usage_swallows_store_errors(self, store):
        store.db.fail = True
        await usage.record_usage("u1", "humanize", {})
        assert store.usage_logs == []

    @pytest.mark.asyncio
    async def test_lookup_subscription(self, store):
        store.users["u1"] = {"id": "u1", "subscription_status": "active"}
        store.users["u2"] = {"id": "u2", "subscription_status": "free"}
        assert await usage.lookup_subscription("u1") is True
        assert await usage.lookup_subscription("u2") is False
        assert await usage.lookup_subscription("u3") is None

    @pytest.mark.asyncio
    async def test_lookup_failure_is_treated_as_unknown(self, store):
        store.db.fail = True
        assert await usage.lookup_subscription("u1") is None


class TestSweepJob:
    @pytest.mark.asyncio
    async def test_sweep_job_drops_previous_days(self):
        limiter = DailyRateLimiter()
        limiter.try_consume("u1", now=datetime.now(timezone.utc) - timedelta(days=2))
        limiter.try_consume("u2")

        assert await sweep_rate_limits(limiter) == 1
        assert len(limiter) == 1

    def test_scheduler_registers_sweep(self):
        limiter = DailyRateLimiter()
        scheduler = create_scheduler(limiter, interval_minutes=60)

        job = scheduler.get_job(SWEEP_JOB_ID)

        assert job is not None
        assert job.args == (limiter,)
        assert job.trigger.interval == timedelta(minutes=60)
