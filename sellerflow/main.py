"""
SellerFlow — FastAPI Application Entry Point
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sellerflow.api.v1 import payout_forecasts, projections
from sellerflow.config import get_settings
from sellerflow.core.exceptions import SellerFlowError
from sellerflow.core.logging_config import configure_logging

settings = get_settings()
logger = logging.getLogger(__name__)


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and initialize DB tables on startup."""
    from sellerflow.database import init_db

    configure_logging(settings.LOG_LEVEL)
    init_db()
    logger.info("%s %s started (%s)", settings.APP_TITLE, settings.APP_VERSION, settings.ENVIRONMENT)
    yield


# ─── App ──────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_TITLE,
    version=settings.APP_VERSION,
    description=(
        "SellerFlow — Cash-flow projection and Amazon payout forecasting for "
        "marketplace sellers: daily balances, safe-spend windows, payout "
        "forecasts and forecast accuracy."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# ─── CORS ─────────────────────────────────────────────────────────────────────

origins = settings.ALLOWED_ORIGINS if settings.is_production else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Exception handlers ───────────────────────────────────────────────────────


@app.exception_handler(SellerFlowError)
async def sellerflow_exception_handler(
    request: Request, exc: SellerFlowError
) -> JSONResponse:
    if exc.http_status_code >= 500:
        logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    if settings.ENVIRONMENT == "development":
        import traceback

        return JSONResponse(
            status_code=500,
            content={
                "error_code": "INTERNAL_ERROR",
                "message": str(exc),
                "traceback": traceback.format_exc(),
            },
        )
    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred.",
        },
    )


# ─── Health endpoint ──────────────────────────────────────────────────────────


@app.get("/health", tags=["health"])
async def health_check() -> Dict[str, Any]:
    """Returns service health including DB connectivity."""
    db_ok = False

    try:
        from sellerflow.database import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as exc:
        logger.warning("Health check DB query failed: %s", exc)

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "db_connected": db_ok,
    }


# ─── Routers ──────────────────────────────────────────────────────────────────

API_PREFIX = "/api/v1"

app.include_router(projections.router, prefix=API_PREFIX)
app.include_router(payout_forecasts.router, prefix=API_PREFIX)
