"""
src/main.py
============================================
FastAPI Application for the Fleet Telemetry Pipeline
============================================

HTTP surface of the ingestion pipeline. Schedulers (cron, a task runner or an
operator) call the trigger endpoints; every stage runs synchronously inside
the request and returns its summary.

Architecture Overview:
---------------------
- Provider Gateway: rate-limited, token-managed access to the GPS51 OpenAPI
- Pipeline Stages: positions, trips, alarms, mileage, geofences, anomalies
- Shared State: token, limiter state and checker lease live in the database,
  so any number of workers can run side by side
"""

# Environment Configuration
from dotenv import load_dotenv

load_dotenv()

# FastAPI Core
from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import List

from src.Core.config import settings
from src.Core.logging_config import get_logger, setup_logging
from src.Controller.Routes import commands, devices, geofences, sync, trips

logger = get_logger(__name__)

# ============================================================
# DEPLOYMENT CONFIGURATION #1: ROOT PATH HANDLING
# ============================================================
from fastapi.responses import RedirectResponse
from starlette.types import ASGIApp, Receive, Scope, Send


def _normalize_root_path(value: str) -> str:
    """'telemetry/' → '/telemetry', '' → ''"""
    value = (value or "").strip().rstrip("/")
    if value and not value.startswith("/"):
        value = "/" + value
    return value


ROOT_PATH = _normalize_root_path(settings.ROOT_PATH)


class StripPrefixMiddleware:
    """
    Serves the app under ROOT_PATH.

    Example (ROOT_PATH = "/telemetry"):
        /telemetry              → 307 to /telemetry/
        /telemetry/sync/trips   → /sync/trips
        /sync/trips             → unchanged
    """

    def __init__(self, app: ASGIApp, prefix: str):
        self.app = app
        self.prefix = prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.prefix:
            path = scope["path"]
            if path == self.prefix:
                await RedirectResponse(url=self.prefix + "/", status_code=307)(scope, receive, send)
                return
            if path.startswith(self.prefix + "/"):
                scope = dict(scope, path=path[len(self.prefix):])
        await self.app(scope, receive, send)


# ============================================================
# DEPLOYMENT CONFIGURATION #2: CORS
# ============================================================
from fastapi.middleware.cors import CORSMiddleware


def _allowed_origins(raw: str) -> List[str]:
    origins = [origin.strip() for origin in (raw or "").split(",") if origin.strip()]
    return ["*"] if "*" in origins else origins


# ============================================================
# APPLICATION LIFESPAN MANAGEMENT
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup and report the provider login mode."""
    setup_logging()
    logger.info("[STARTUP] %s %s", settings.PROJECT_NAME, settings.PROJECT_VERSION)

    if settings.PROVIDER_USERNAME and settings.PROVIDER_PASSWORD:
        logger.info("[STARTUP] Automated provider login enabled for %s", settings.PROVIDER_USERNAME)
    else:
        logger.warning("[STARTUP] No provider credentials; an expired token will stop provider stages")

    if settings.PROVIDER_PROXY_URL:
        logger.info("[STARTUP] Provider calls are forwarded through %s", settings.PROVIDER_PROXY_URL)

    yield

    logger.info("[SHUTDOWN] Application shutdown initiated")


# ============================================================
# APPLICATION INSTANCE CREATION
# ============================================================
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    lifespan=lifespan
)


# ============================================================
# MIDDLEWARE REGISTRATION
# ============================================================
# Middlewares run in REVERSE order of registration

if ROOT_PATH:
    app.add_middleware(StripPrefixMiddleware, prefix=ROOT_PATH)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(settings.HTTP_ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# HEALTH CHECK ENDPOINT
# ============================================================
@app.get("/health")
def health():
    """Liveness probe for the load balancer / container runtime."""
    return {"status": "ok"}


# ============================================================
# REST API ROUTE REGISTRATION
# ============================================================
app.include_router(devices.router, prefix="/devices", tags=["devices"])
app.include_router(sync.router, prefix="/sync", tags=["sync"])
app.include_router(trips.router, prefix="/trips", tags=["trips"])
app.include_router(geofences.router, prefix="/geofences", tags=["geofences"])
app.include_router(commands.router, prefix="/commands", tags=["commands"])


# ============================================================
# API INFORMATION ENDPOINT
# ============================================================
@app.get("/api")
def api_info():
    """API discovery: version, provider mode and trigger endpoints."""
    return {
        "status": "online",
        "version": settings.PROJECT_VERSION,
        "features": {
            "provider_proxy": bool(settings.PROVIDER_PROXY_URL),
            "automated_login": bool(settings.PROVIDER_USERNAME and settings.PROVIDER_PASSWORD),
        },
        "endpoints": {
            "devices": "/devices/*",
            "sync": "/sync/*",
            "trips": "/trips/*",
            "geofences": "/geofences/*",
            "commands": "/commands/*",
            "health": "/health"
        }
    }
