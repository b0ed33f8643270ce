"""FastAPI application for paid signal inference.

This module provides a minimal HTTP API service for:
- POST /infer - Raw model reply for a trading-signal message
- POST /api/summarize - Model-written summary of per-token P&L
- GET /health - Liveness and ledger provisioning state

Requirements:
- BROKER_FACTORY must name a ``module:callable`` building the compute broker
  (unless a broker is passed to ``create_app`` directly)
- PRIVATE_KEY is handed to that factory
- No authentication (local network only)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import build_services
from api.routes.inference import router as inference_router
from core.config import InferenceSettings
from core.inference.broker import ComputeBroker, create_broker, load_broker_factory
from core.inference.errors import BrokerConfigurationError

logger = logging.getLogger(__name__)


async def _resolve_broker(settings: InferenceSettings) -> ComputeBroker:
    if not settings.broker_factory:
        raise BrokerConfigurationError("BROKER_FACTORY environment variable is required")
    factory = load_broker_factory(settings.broker_factory)
    broker = await create_broker(
        factory,
        private_key=settings.private_key,
        rpc_url=settings.rpc_url,
    )
    logger.info("Inference broker initialized")
    return broker


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the broker and services, then make sure the ledger is funded.

    A provisioning failure aborts startup.
    """
    settings: InferenceSettings = app.state.settings
    broker = app.state.broker or await _resolve_broker(settings)
    services = build_services(settings, broker, http_client=app.state.http_client)
    try:
        await services.provisioner.ensure_funded()
        app.state.services = services
        logger.info("Inference service ready (provider=%s)", services.provider_id)
        yield
    finally:
        app.state.services = None
        await services.close()


def create_app(
    settings: InferenceSettings | None = None,
    *,
    broker: ComputeBroker | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Defaults to ``InferenceSettings.from_env()``
        broker: Pre-built broker; otherwise built from ``settings.broker_factory``
        http_client: Shared client for provider calls (tests pass a mock transport)
    """
    settings = settings or InferenceSettings.from_env()

    app = FastAPI(
        title="Signal Inference API",
        description="Paid inference for trading-signal extraction and summaries",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.broker = broker
    app.state.http_client = http_client
    app.state.services = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(inference_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        services = request.app.state.services
        return {
            "status": "ok" if services is not None else "starting",
            "provider": settings.provider_address,
            "ledger_provisioned": bool(services and services.provisioner.provisioned),
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(_request, exc):
        """Global exception handler to ensure consistent error responses."""
        logger.error("Unhandled error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app
