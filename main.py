from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.logging_config import configure_logging
from config.settings import settings
from routers import (
    api_keys,
    auth,
    root,
    sessions,
    sitemap,
    users,
)
from services.database import AsyncSessionLocal, close_db, init_db
from services.sessions import SessionRepository
from utils.errors import register_exception_handlers
from utils.middleware import MethodOverrideMiddleware

port = int(os.environ.get("FASTAPIPORT", 8000))

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    await init_db()
    async with AsyncSessionLocal() as db:
        await SessionRepository(db).purge_expired()
    logger.info("Account API started (%s)", settings.ENVIRONMENT)
    yield
    await close_db()


app = FastAPI(
    title="Account Self-Service API",
    description="Hypermedia (HAL / HAL-FORMS) API for sessions, API keys and user profiles.",
    version=settings.API_VERSION,
    lifespan=lifespan,
)

# CORS is outermost; method override runs inside it, before routing.
app.add_middleware(MethodOverrideMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag", "X-Cache", "X-Trace-Id"],
)

register_exception_handlers(app)

# -----------------------------------------------------------------------------
# Routers to hypermedia resources
# -----------------------------------------------------------------------------

app.include_router(router=root.router)
app.include_router(router=sitemap.router)
app.include_router(router=auth.router)
app.include_router(router=users.router)
app.include_router(router=sessions.router)
app.include_router(router=api_keys.router)


# -----------------------------------------------------------------------------
# Entrypoint for `python main.py`
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
