# terminal/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from terminal.routers import entry_logs, health, lanes, penalties, tickets, vehicles, ws
from terminal.database import create_tables
from terminal.config import settings
from terminal.services.errors import TransientStoreError
from terminal.services.notifier import broadcaster
from terminal.services.status_sweep import status_sweep
from terminal.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Terminal Lane Queueing API",
    description="Entry/exit lanes, Pila queue numbers, exit tickets and penalties for the bus & jeepney terminal.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (allow lane terminals and dashboards on the LAN) ───────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to terminal IPs in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Health, docs and the websocket stay open.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {"/api/v1/health", "/api/v1/ws", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(TransientStoreError)
async def store_unavailable_handler(request: Request, exc: TransientStoreError):
    logger.warning(f"Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Store temporarily unavailable"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(lanes.router,      prefix="/api/v1", tags=["🚌 Lanes"])
app.include_router(tickets.router,    prefix="/api/v1", tags=["🎫 Tickets"])
app.include_router(penalties.router,  prefix="/api/v1", tags=["🚫 Penalties"])
app.include_router(entry_logs.router, prefix="/api/v1", tags=["📋 Entry Logs"])
app.include_router(vehicles.router,   prefix="/api/v1", tags=["🔍 Vehicles"])
app.include_router(health.router,     prefix="/api/v1", tags=["💚 Health"])
app.include_router(ws.router,         prefix="/api/v1", tags=["📡 Live Updates"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Terminal backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    broadcaster.start()
    status_sweep.start()
    logger.info(f"🕑 Timezone {settings.TERMINAL_TIMEZONE}, endpoints {settings.FD_CODES}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Terminal backend shutting down...")
    status_sweep.stop()
    await broadcaster.stop()
