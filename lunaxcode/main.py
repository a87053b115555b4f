import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# ✅ Import All API Routes
from lunaxcode.api.routes import admin, ai, health

# ✅ Import Core Services
from lunaxcode.core import config
from lunaxcode.core.errors import register_exception_handlers
from lunaxcode.core.logging_config import setup_logging
from lunaxcode.core.rate_limit import SlidingWindowRateLimiter
from lunaxcode.llm.callers import DirectCaller
from lunaxcode.llm.router import ProviderRouter
from lunaxcode.services.storage import InMemoryStorage

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)
    if app.state.storage is None:
        if config.RUN_MIGRATIONS:
            from lunaxcode.db.migrate import run_migrations
            run_migrations()
        else:
            from lunaxcode.db.init_db import init_db
            init_db()
    logger.info(f"Lunaxcode API started (storage={config.STORAGE_BACKEND})")
    yield


def create_app(storage_backend: Optional[str] = None) -> FastAPI:
    """
    Build the application.

    Args:
        storage_backend: "database" or "memory"; defaults to STORAGE_BACKEND
    """
    backend = storage_backend or config.STORAGE_BACKEND

    # ============================================
    # ✅ FASTAPI APP INIT
    # ============================================

    app = FastAPI(title="Lunaxcode API", lifespan=lifespan)

    # Per-process state; the in-memory store is created once here, never at import
    app.state.storage = InMemoryStorage() if backend == "memory" else None
    app.state.provider_router = ProviderRouter(proxy_url=config.AI_PROXY_URL)
    app.state.direct_caller = DirectCaller()
    app.state.rate_limiter = SlidingWindowRateLimiter(
        per_minute=config.PROXY_RATE_LIMIT_PER_MINUTE,
        per_hour=config.PROXY_RATE_LIMIT_PER_HOUR,
    )

    # ✅ CORS: only the portal frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    register_exception_handlers(app)

    # ============================================
    # ✅ REGISTER ALL ROUTERS
    # ============================================

    app.include_router(ai.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    @app.get("/")
    def root():
        return {"status": "Lunaxcode API running"}

    return app


app = create_app()
