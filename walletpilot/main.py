"""WalletPilot API: FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from walletpilot.config import settings
from walletpilot.db.database import init_db, close_db
from walletpilot.errors import WalletPilotError
from walletpilot.auth.middleware import AuthMiddleware
from walletpilot.auth.rate_limiter import RateLimitMiddleware
from walletpilot.models.common import fail

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting WalletPilot API...")
    await init_db()
    if not settings.identity_configured:
        logger.warning("Identity provider credentials not configured; account routes will return 503")
    logger.info("WalletPilot API ready (version=%s)", settings.app_version)
    yield
    await close_db()
    logger.info("WalletPilot API stopped")


app = FastAPI(
    title="WalletPilot API",
    description="API keys, permission requests and transaction intents for WalletPilot agents",
    version=settings.app_version,
    lifespan=lifespan,
)

# Starlette LIFO: request → CORS → RateLimiter → Auth → route handlers
app.add_middleware(AuthMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Refresh-Token"],
)


# ── Error rendering: every response is {success, data?, error?} ──

@app.exception_handler(WalletPilotError)
async def walletpilot_error_handler(request: Request, exc: WalletPilotError):
    return JSONResponse(status_code=exc.status_code, content=fail(exc.message))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=fail(message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=fail(message), headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=fail("Internal server error"))


from walletpilot.api.auth import router as auth_router
from walletpilot.api.permissions import router as permissions_router
from walletpilot.api.transactions import router as transactions_router
from walletpilot.api.telemetry import router as telemetry_router
from walletpilot.api.waitlist import router as waitlist_router

app.include_router(auth_router)
app.include_router(permissions_router)
app.include_router(transactions_router)
app.include_router(telemetry_router)
app.include_router(waitlist_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {
        "name": "WalletPilot API",
        "version": settings.app_version,
        "status": "healthy",
        "docs": settings.docs_url,
    }
