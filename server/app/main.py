"""
Main FastAPI application for the care group voice bridge.
Bridges Twilio phone calls to OpenAI Realtime with read-only care group lookups.
"""

import logging
from contextlib import asynccontextmanager

from app.config import settings
from app.routes import health, voice, webhooks
from app.services.database import close_db, init_db
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
for noisy in ("websockets", "httpx"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    await init_db()
    logger.info(f"Care voice bridge started ({settings.APP_ENV})")

    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title="Care Group Voice Bridge",
    description="Real-time voice assistant for care group information",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(voice.router, prefix="/api/v1/voice", tags=["voice"])
app.include_router(webhooks.router, prefix="/api/v1/webhooks", tags=["webhooks"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Care Group Voice Bridge",
        "version": "1.0.0",
        "status": "running",
    }
