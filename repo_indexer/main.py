# repo_indexer/main.py
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

import repo_indexer.models  # noqa: F401  (register tables on Base.metadata)
from repo_indexer.api.auth import router as auth_router
from repo_indexer.api.github_routes import router as github_router
from repo_indexer.api.rag import router as rag_router
from repo_indexer.api.repositories import router as repositories_router
from repo_indexer.api.user_routes import router as user_router
from repo_indexer.core.config import Settings, get_settings
from repo_indexer.core.db import Base, create_db_engine, create_session_factory
from repo_indexer.core.errors import register_exception_handlers
from repo_indexer.core.logging_config import setup_logging
from repo_indexer.core.security import OAuthStateStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the application. ``transport`` replaces the network for outbound HTTP (tests)."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    engine = create_db_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create DB tables (simple auto-create)
        Base.metadata.create_all(bind=engine)
        app.state.http_client = httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS, follow_redirects=True, transport=transport
        )
        logger.info("repo-indexer started (api prefix %s)", settings.API_PREFIX)
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            engine.dispose()

    app = FastAPI(title="Repo Indexer Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.oauth_states = OAuthStateStore(settings.OAUTH_STATE_TTL_SECONDS, settings.OAUTH_STATE_MAX_PENDING)

    register_exception_handlers(app)

    # Include routers
    for router in (auth_router, github_router, repositories_router, user_router, rag_router):
        app.include_router(router, prefix=settings.API_PREFIX)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()
