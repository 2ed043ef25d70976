"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
import logging
import re

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from dripcheck import __version__
from backend.app.core.config import Settings, get_settings
from backend.app.core.database import db
from backend.app.core.premium import PremiumGate, PremiumStatusCache
from backend.app.core.rate_limit import DailyRateLimiter
from backend.app.services import usage
from backend.app.services.rewrite import RewriteService, build_llm_client
from backend.app.api import extensionpay, humanize, users

logger = logging.getLogger(__name__)

# Allow browser extensions (Chrome/Edge) to call the API directly.
_extension_origin_re = re.compile(r"^chrome-extension://[a-z0-9_-]+$", re.IGNORECASE)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = app.state.settings

    await db.connect(settings)
    if db.enabled:
        logger.info("[DB] Connected to Postgres")
        # Ensure schema exists (idempotent)
        try:
            from backend.app.storage.postgres import init_schema
            async with db.connection() as conn:
                await init_schema(conn)
        except Exception as e:
            # Don't crash the app on schema init errors; surface them in logs.
            logger.error("[DB] Schema init failed: %s", e)

    from backend.app.worker import create_scheduler

    scheduler = create_scheduler(app.state.rate_limiter, settings.rate_limit_sweep_minutes)
    scheduler.start()
    logger.info("[Scheduler] Started, sweeping rate counters every %d min", settings.rate_limit_sweep_minutes)

    yield

    # Cleanup
    scheduler.shutdown(wait=False)
    app.state.rate_limiter.clear()
    app.state.premium_cache.clear()
    await db.disconnect()


def create_app(settings: Settings = None) -> FastAPI:
    """Create and configure the FastAPI app."""
    settings = settings or get_settings()
    configure_logging(settings)

    def _is_allowed_origin(origin: str | None) -> bool:
        if not origin:
            return False
        if origin in settings.cors_origins_list:
            return True
        return bool(_extension_origin_re.match(origin))

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Rewrites corporate-sounding posts for the Drip Check extension",
        lifespan=lifespan,
    )

    app.state.settings = settings

    # Per-process state, shared by all requests on this event loop
    app.state.premium_cache = PremiumStatusCache(ttl_seconds=settings.premium_cache_ttl_seconds)
    app.state.premium_gate = PremiumGate(
        app.state.premium_cache,
        usage.lookup_subscription,
        token_max_age_seconds=settings.premium_token_max_age_seconds,
        token_clock_skew_seconds=settings.premium_token_clock_skew_seconds,
        dev_bypass=settings.premium_bypass_active,
    )
    app.state.rate_limiter = DailyRateLimiter(daily_limit=settings.daily_request_limit)
    app.state.rewriter = RewriteService(
        build_llm_client(settings),
        prime_response=settings.rewrite_prime_response,
    )
    if app.state.rewriter.client is None:
        logger.warning("No LLM API key configured for provider %s; /api/humanize will fail", settings.llm_provider)
    if settings.premium_bypass_active:
        logger.warning("Development premium bypass is ON; every user is treated as premium")

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_origin_regex=_extension_origin_re.pattern,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    def _error_response(request: Request, status_code: int, message, headers=None) -> JSONResponse:
        response = JSONResponse(
            status_code=status_code,
            content={"success": False, "error": message},
            headers=headers,
        )
        # Add CORS headers manually
        origin = request.headers.get("origin")
        if _is_allowed_origin(origin):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
        return response

    # Exception handlers to ensure CORS headers are always sent
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(request, exc.status_code, exc.detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(request, status.HTTP_400_BAD_REQUEST, "Invalid request body")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    # Routes
    app.include_router(humanize.router)
    app.include_router(users.router)
    app.include_router(extensionpay.router)

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": settings.service_id}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    _settings = get_settings()
    uvicorn.run("backend.app.main:app", host=_settings.host, port=_settings.port)
