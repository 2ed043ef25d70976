"""
FastAPI dependencies for the per-process services created in ``create_app``.
"""

from fastapi import Request

from backend.app.core.premium import PremiumGate, PremiumStatusCache
from backend.app.core.rate_limit import DailyRateLimiter
from backend.app.services.rewrite import RewriteService


def get_premium_gate(request: Request) -> PremiumGate:
    return request.app.state.premium_gate


def get_premium_cache(request: Request) -> PremiumStatusCache:
    return request.app.state.premium_cache


def get_rate_limiter(request: Request) -> DailyRateLimiter:
    return request.app.state.rate_limiter


def get_rewriter(request: Request) -> RewriteService:
    return request.app.state.rewriter
