"""
Pytest configuration for Drip Check tests.
Sets environment variables before any app imports so settings are predictable.
"""

import os

# Must be set before backend.app modules are imported
os.environ["DRIPCHECK_ENVIRONMENT"] = "test"
os.environ["DRIPCHECK_ANTHROPIC_API_KEY"] = "sk-ant-test-key"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DRIPCHECK_DATABASE_URL", None)
os.environ.pop("DRIPCHECK_EXTENSIONPAY_WEBHOOK_SECRET", None)

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from backend.app.core.config import Settings
from backend.app.main import create_app
from backend.app.services.rewrite import RewriteService
from backend.app.storage import postgres
from dripcheck.llm.provider import LLMClient, LLMConfig, LLMResponse


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

class FakeLLMClient(LLMClient):
    """Records calls and returns a canned response."""

    provider_name = "fake"

    def __init__(self, content: str = " think working together is helping us grow.",
                 input_tokens: int = 120, output_tokens: int = 30, error: str = "",
                 prefill_supported: bool = True):
        super().__init__(LLMConfig(provider="anthropic", api_key="test"))
        self.content = content
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.error = error
        self.prefill_supported = prefill_supported
        self.calls: List[Dict[str, Any]] = []

    @property
    def supports_prefill(self) -> bool:
        return self.prefill_supported

    async def complete(self, prompt, system_prompt=None, prefill=None) -> LLMResponse:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "prefill": prefill})
        if self.error:
            return LLMResponse(error=self.error)
        return LLMResponse(
            content=self.content,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model="fake-model",
        )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class FakeConnection:
    @asynccontextmanager
    async def transaction(self):
        yield


class FakeDatabase:
    """Stands in for backend.app.core.database.Database."""

    def __init__(self, enabled: bool = True, fail: bool = False):
        self._enabled = enabled
        self.fail = fail

    @property
    def enabled(self) -> bool:
        return self._enabled

    @asynccontextmanager
    async def connection(self):
        if self.fail:
            raise ConnectionError("database unavailable")
        yield FakeConnection()


class FakeStore:
    """In-memory replacement for the functions in backend.app.storage.postgres."""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.payments: List[Dict[str, Any]] = []
        self.usage_logs: List[Dict[str, Any]] = []
        self.get_user_calls = 0

    async def upsert_user(self, conn, user_id, *, email=None, subscription_status="free",
                          subscription_id=None, subscription_period_end=None):
        now = datetime.now(timezone.utc)
        existing = self.users.get(user_id, {"id": user_id, "created_at": now})
        row = dict(existing)
        row.update({
            "email": email if email is not None else existing.get("email"),
            "subscription_status": postgres.normalize_status(subscription_status),
            "subscription_id": subscription_id or existing.get("subscription_id"),
            "subscription_period_end": subscription_period_end or existing.get("subscription_period_end"),
            "updated_at": now,
        })
        self.users[user_id] = row
        return dict(row)

    async def ensure_user(self, conn, user_id, email=None):
        if user_id not in self.users:
            self.users[user_id] = {"id": user_id, "email": email, "subscription_status": "free"}
        elif email is not None:
            self.users[user_id]["email"] = email

    async def get_user(self, conn, user_id):
        self.get_user_calls += 1
        row = self.users.get(user_id)
        return dict(row) if row else None

    async def find_user_by_email(self, conn, email):
        for row in self.users.values():
            if row.get("email") == email:
                return dict(row)
        return None

    async def find_user_by_subscription(self, conn, subscription_id):
        for row in self.users.values():
            if row.get("subscription_id") == subscription_id:
                return dict(row)
        return None

    async def create_payment(self, conn, user_id, *, amount, currency, status, extensionpay_payment_id=None):
        row = {
            "id": len(self.payments) + 1,
            "user_id": user_id,
            "amount": amount,
            "currency": currency,
            "status": status,
            "extensionpay_payment_id": extensionpay_payment_id,
        }
        self.payments.append(row)
        return dict(row)

    async def payment_exists(self, conn, extensionpay_payment_id):
        return any(p["extensionpay_payment_id"] == extensionpay_payment_id for p in self.payments)

    async def log_usage(self, conn, user_id, action, metadata=None):
        self.usage_logs.append({"user_id": user_id, "action": action, "metadata": metadata or {}})


_STORE_FUNCTIONS = (
    "upsert_user",
    "ensure_user",
    "get_user",
    "find_user_by_email",
    "find_user_by_subscription",
    "create_payment",
    "payment_exists",
    "log_usage",
)


@pytest.fixture
def store(monkeypatch):
    """Swap the Postgres layer for an in-memory store and pretend a DB is connected."""
    fake = FakeStore()
    for name in _STORE_FUNCTIONS:
        monkeypatch.setattr(postgres, name, getattr(fake, name))
    fake_db = FakeDatabase()
    monkeypatch.setattr("backend.app.services.usage.db", fake_db)
    monkeypatch.setattr("backend.app.api.extensionpay.db", fake_db)
    fake.db = fake_db
    return fake


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return Settings(environment="test", anthropic_api_key="sk-ant-test-key")


@pytest.fixture
def llm():
    return FakeLLMClient()


@pytest.fixture
def app(settings, llm):
    application = create_app(settings)
    application.state.rewriter = RewriteService(llm, prime_response=True)
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_token():
    """Premium token the way the extension sends it (epoch milliseconds)."""
    def _make(age_seconds: float = 0) -> str:
        return str(int((time.time() - age_seconds) * 1000))
    return _make
