"""Request-scoped access to the services built at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from fastapi import HTTPException, Request

from core.config import InferenceSettings
from core.inference.broker import ComputeBroker, LedgerProvisioner
from core.inference.client import ProviderClient
from core.inference.orchestrator import InferenceOrchestrator
from core.signals.extractor import SignalExtractor
from core.signals.summary import SummaryBuilder

logger = logging.getLogger(__name__)


@dataclass
class InferenceServices:
    """Everything a request handler needs, built once per application."""

    provider_id: str
    broker: ComputeBroker
    provisioner: LedgerProvisioner
    client: ProviderClient
    orchestrator: InferenceOrchestrator
    extractor: SignalExtractor
    summary_builder: SummaryBuilder

    async def close(self) -> None:
        await self.client.close()
        await self.broker.close()


def build_services(
    settings: InferenceSettings,
    broker: ComputeBroker,
    http_client: httpx.AsyncClient | None = None,
) -> InferenceServices:
    """Wire the orchestrator and the two consumer flows around ``broker``."""
    client = ProviderClient(client=http_client, timeout_seconds=settings.timeout_seconds)
    orchestrator = InferenceOrchestrator(
        directory=broker.directory,
        signer=broker.signer,
        settler=broker.settler,
        client=client,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay_seconds,
        max_settlement_fee=settings.max_settlement_fee,
    )
    provider_id = settings.provider_address
    return InferenceServices(
        provider_id=provider_id,
        broker=broker,
        provisioner=LedgerProvisioner(broker.ledger, settings.initial_balance),
        client=client,
        orchestrator=orchestrator,
        extractor=SignalExtractor(orchestrator, provider_id),
        summary_builder=SummaryBuilder(orchestrator, provider_id),
    )


def get_services(request: Request) -> InferenceServices:
    """FastAPI dependency returning the application's services."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.error("Inference services requested before startup completed")
        raise HTTPException(status_code=503, detail="Service not ready")
    return services
