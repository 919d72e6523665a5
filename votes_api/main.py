import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from votes_api.config import settings
from votes_api.database import Store
from votes_api.errors import install_exception_handlers
from votes_api.identity import load_verifier
from votes_api.middleware import IdentityMiddleware, TimingMiddleware
from votes_api import models  # noqa: F401  registers every table on Base.metadata
from votes_api.responses import utc_timestamp
from votes_api.routers import articles, stats, votes

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: an unreachable store aborts startup.
    store = Store.from_settings(settings)
    try:
        await store.connect(create_schema=settings.CREATE_SCHEMA)
    except Exception:
        logger.exception("Cannot connect to store %s", store.masked_url)
        await store.engine.dispose()
        raise
    app.state.store = store
    app.state.verifier = load_verifier(
        settings.IDENTITY_CREDENTIALS_FILE, settings.IDENTITY_JWKS_URL
    )
    app.state.started_at = time.monotonic()
    logger.info("API ready on port %d", settings.PORT)
    yield
    # Shutdown (also reached on SIGINT / SIGTERM)
    logger.info("Shutting down")
    await store.close()


app = FastAPI(
    title="Article Votes API",
    description="Votes and comments on articles, one of each per user",
    version="1.0.0",
    lifespan=lifespan,
)

install_exception_handlers(app)

# Middleware (the last added runs first)
app.add_middleware(IdentityMiddleware)
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(articles.router)
app.include_router(votes.router)
app.include_router(stats.router)


@app.get("/health")
async def health(request: Request):
    store: Store | None = getattr(request.app.state, "store", None)
    if store is None:
        database = {"connected": False, "database": None, "uri": None}
    else:
        database = store.status()
        database["connected"] = store.connected and await store.ping()
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return {
        "status": "OK",
        "timestamp": utc_timestamp(),
        "database": database,
        "uptime": round(time.monotonic() - started_at, 3),
    }


def serve() -> None:
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    serve()
