"""Signal inference API routes.

Request bodies are validated with pydantic models, but validation errors
come back as the fixed ``{"error": ...}`` bodies clients rely on, not
FastAPI's 422 format. The raw body is therefore read and validated here
instead of being declared as an endpoint parameter.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from api.dependencies import InferenceServices, get_services
from core.signals.summary import MalformedJson, NoJsonFound
from core.types import SignalPnl

logger = logging.getLogger(__name__)

router = APIRouter(tags=["inference"])

MESSAGE_REQUIRED = "Message is required"
SUMMARY_INPUT_REQUIRED = "averagePnl and signals (as an array) are required"


# =============================================================================
# Request models
# =============================================================================


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    return value


class InferRequest(BaseModel):
    """Body of ``POST /infer``."""

    message: str = Field(..., min_length=1, description="Channel message to extract a signal from")


class SignalPnlIn(BaseModel):
    """One ``{"token", "pnl"}`` entry of a summary request."""

    token: str = Field(..., min_length=1)
    pnl: Optional[Decimal] = Field(None, description="Realised P&L in percent; missing means 0")

    @field_validator("pnl", mode="before")
    @classmethod
    def validate_pnl(cls, v: Any) -> Any:
        return _reject_bool(v)

    def to_signal_pnl(self) -> SignalPnl:
        return SignalPnl(token=self.token, pnl=self.pnl if self.pnl is not None else Decimal("0"))


class SummarizeRequest(BaseModel):
    """Body of ``POST /api/summarize``."""

    model_config = ConfigDict(populate_by_name=True)

    average_pnl: Decimal = Field(..., alias="averagePnl")
    signals: list[SignalPnlIn]

    @field_validator("average_pnl", mode="before")
    @classmethod
    def validate_average_pnl(cls, v: Any) -> Any:
        """JSON true/false must not pass as 1/0."""
        return _reject_bool(v)


async def _read_json_object(request: Request) -> dict[str, Any]:
    """Decode the body, treating empty or non-object bodies as ``{}``."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/infer")
async def infer(request: Request, services: InferenceServices = Depends(get_services)) -> JSONResponse:
    """Return the model's raw reply for a trading-signal message."""
    try:
        body = InferRequest.model_validate(await _read_json_object(request))
    except ValidationError as exc:
        logger.debug("Rejected /infer body: %s", exc)
        return _error(400, MESSAGE_REQUIRED)

    try:
        await services.provisioner.ensure_funded()
        result = await services.extractor.extract_raw(body.message)
    except Exception as exc:
        logger.error("Inference error: %s", exc)
        return _error(500, "Inference failed")

    return JSONResponse(content={"result": result})


@router.post("/api/summarize")
async def summarize(request: Request, services: InferenceServices = Depends(get_services)) -> JSONResponse:
    """Summarize per-token P&L into ``{"averagePnl", "insights"}``."""
    try:
        body = SummarizeRequest.model_validate(await _read_json_object(request))
    except ValidationError as exc:
        logger.debug("Rejected /api/summarize body: %s", exc)
        return _error(400, SUMMARY_INPUT_REQUIRED)

    signals = [item.to_signal_pnl() for item in body.signals]
    try:
        await services.provisioner.ensure_funded()
        summary = await services.summary_builder.build_summary(body.average_pnl, signals)
    except NoJsonFound:
        logger.error("Summary reply contained no JSON object")
        return _error(500, "No JSON found in response")
    except MalformedJson as exc:
        logger.error("Failed to parse JSON: %s", exc)
        return _error(500, "Failed to parse summary")
    except Exception as exc:
        logger.error("Summarization error: %s", exc)
        return _error(500, "Summarization failed")

    return JSONResponse(content=summary.to_dict())
