"""Inference orchestrator — one paid chat completion with bounded retries.

Each attempt:
1. Fresh single-use headers from the request signer
2. One POST to ``{endpoint}/chat/completions``
3. Pure classification of the body
4. Step runner decides: return, settle-then-retry, retry or give up

Attempts are strictly sequential and separated by a fixed delay.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Callable

from core.inference.broker import FeeSettler, RequestSigner, ServiceDirectory
from core.inference.classifier import classify_response, outcome_to_error
from core.inference.client import ProviderClient
from core.inference.errors import ExhaustedRetries, InferenceError
from core.inference.types import (
    FeeShortfall,
    InferenceAttempt,
    NextAction,
    OtherFailure,
    ProviderEndpoint,
    ProviderResponse,
    Success,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_DELAY_SECONDS = 1.0


def next_action(outcome: ProviderResponse, attempt_number: int, max_retries: int) -> NextAction:
    """Map a classified outcome to the loop's next step.

    Shortfalls are settled on every attempt, including the last one.
    """
    if isinstance(outcome, Success):
        return NextAction.RETURN
    if isinstance(outcome, FeeShortfall):
        return NextAction.SETTLE_AND_RETRY
    if attempt_number >= max_retries:
        return NextAction.GIVE_UP
    return NextAction.RETRY


class InferenceOrchestrator:
    """Drives the sign → call → classify → settle → retry loop.

    Usage::

        orchestrator = InferenceOrchestrator(
            directory=broker.directory,
            signer=broker.signer,
            settler=broker.settler,
            client=ProviderClient(),
        )
        text = await orchestrator.infer(provider_id, prompt)

    The orchestrator holds no per-request state and can be shared by
    concurrent requests.
    """

    def __init__(
        self,
        directory: ServiceDirectory,
        signer: RequestSigner,
        settler: FeeSettler,
        client: ProviderClient,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        max_settlement_fee: Decimal | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.directory = directory
        self.signer = signer
        self.settler = settler
        self.client = client
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_settlement_fee = max_settlement_fee
        self._sleep = sleep

    async def resolve_endpoint(self, provider_id: str) -> ProviderEndpoint:
        """Look up the provider's endpoint (never cached across requests)."""
        endpoint = await self.directory.get_service_metadata(provider_id)
        logger.info("Endpoint: %s Model: %s", endpoint.url, endpoint.model_id)
        return endpoint

    async def infer(
        self,
        provider_id: str,
        prompt: str,
        *,
        model: str | None = None,
        endpoint: ProviderEndpoint | None = None,
    ) -> str:
        """Obtain the assistant text for ``prompt``.

        Args:
            provider_id: Compute provider to pay and call
            prompt: Sent as a single system message
            model: Override the endpoint's model id
            endpoint: Pre-resolved endpoint; looked up when omitted

        Returns:
            The non-empty assistant message text

        Raises:
            ExhaustedRetries: After ``max_retries`` unsuccessful attempts
        """
        if endpoint is None:
            endpoint = await self.resolve_endpoint(provider_id)

        last_error: Exception | None = None

        for attempt_number in range(1, self.max_retries + 1):
            attempt = await self._run_attempt(provider_id, prompt, endpoint, model, attempt_number)
            action = next_action(attempt.outcome, attempt_number, self.max_retries)

            if action is NextAction.RETURN:
                logger.info("Attempt %d succeeded for provider %s", attempt_number, provider_id)
                return attempt.outcome.text

            last_error = attempt.error or outcome_to_error(attempt.outcome, provider_id)

            if action is NextAction.SETTLE_AND_RETRY:
                await self._settle(provider_id, attempt.outcome)

            logger.warning(
                "Attempt %d/%d failed for provider %s: %s",
                attempt_number,
                self.max_retries,
                provider_id,
                last_error,
            )

            if attempt_number < self.max_retries:
                await self._sleep(self.retry_delay)

        logger.error(
            "Failed to get valid response after %d attempts for provider %s",
            self.max_retries,
            provider_id,
        )
        raise ExhaustedRetries(self.max_retries, provider_id=provider_id, last_error=last_error)

    # ------------------------------------------------------------------
    # Step runner
    # ------------------------------------------------------------------

    async def _run_attempt(
        self,
        provider_id: str,
        prompt: str,
        endpoint: ProviderEndpoint,
        model: str | None,
        attempt_number: int,
    ) -> InferenceAttempt:
        """Sign, call and classify once. Never raises for provider failures."""
        attempt = InferenceAttempt(attempt_number=attempt_number)
        try:
            attempt.headers = await self.signer.sign_request(provider_id, prompt)
            attempt.raw_response = await self.client.post_chat_completion(
                endpoint,
                attempt.headers,
                prompt,
                model=model,
            )
        except InferenceError as e:
            e.provider_id = e.provider_id or provider_id
            attempt.error = e
            attempt.outcome = OtherFailure(detail=str(e))
            logger.error("Error on attempt %d: %s", attempt_number, e)
            return attempt
        except Exception as e:
            attempt.error = e
            attempt.outcome = OtherFailure(detail=f"{type(e).__name__}: {e}")
            logger.error("Error on attempt %d: %s", attempt_number, e)
            return attempt

        attempt.outcome = classify_response(attempt.raw_response)
        logger.info("Attempt %d result: %s", attempt_number, attempt.raw_response)
        return attempt

    async def _settle(self, provider_id: str, shortfall: FeeShortfall) -> bool:
        """Pay the shortfall once. Failures are logged, not raised."""
        amount = shortfall.amount
        if amount <= 0:
            logger.warning("Ignoring non-positive settlement amount %s for %s", amount, provider_id)
            return False
        if self.max_settlement_fee is not None and amount > self.max_settlement_fee:
            logger.warning(
                "Refusing to settle %s for %s: exceeds cap %s",
                amount,
                provider_id,
                self.max_settlement_fee,
            )
            return False

        logger.info("Settling fee: %s", amount)
        try:
            await self.settler.settle_fee(provider_id, amount)
        except Exception as e:
            logger.error("Fee settlement of %s for %s failed: %s", amount, provider_id, e)
            return False
        logger.info("Fee settled successfully")
        return True
