"""Shared test fixtures for pytest.

Provides fake broker collaborators and a scripted provider client so the
orchestrator, consumer flows and API can be tested without a network.
"""

from __future__ import annotations

import itertools
from decimal import Decimal
from typing import Any, Callable, Mapping

import httpx
import pytest

from core.config import InferenceSettings
from core.inference.broker import ComputeBroker
from core.inference.orchestrator import InferenceOrchestrator
from core.inference.types import ProviderEndpoint

PROVIDER_ID = "0xProvider"


def _completion(text: str) -> dict[str, Any]:
    """A successful chat-completion body."""
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def _fee_error(amount: str = "0.000123") -> dict[str, Any]:
    """The provider's "settle the previous fee first" error body."""
    return {"error": f"invalid request: please call settleFee first, expected {amount} A0GI, got 0"}


class FakeBroker:
    """Implements every broker protocol and records the calls made to it."""

    def __init__(
        self,
        endpoint: ProviderEndpoint | None = None,
        balance: Decimal = Decimal("1"),
        ledger_missing: bool = False,
        settle_error: Exception | None = None,
        events: list[str] | None = None,
    ) -> None:
        self.endpoint = endpoint or ProviderEndpoint(url="https://provider.test/v1/proxy", model_id="llama-3.3-70b")
        self.balance = balance
        self.ledger_missing = ledger_missing
        self.settle_error = settle_error
        self.events = events if events is not None else []
        self.fund_calls: list[Decimal] = []
        self.balance_calls = 0
        self.metadata_calls: list[str] = []
        self.sign_calls: list[tuple[str, str, Mapping[str, str]]] = []
        self.settle_calls: list[tuple[str, Decimal]] = []
        self._signatures = itertools.count(1)

    async def get_balance(self) -> Decimal:
        self.balance_calls += 1
        if self.ledger_missing:
            raise RuntimeError("Account does not exist")
        return self.balance

    async def fund_ledger(self, amount: Decimal) -> None:
        self.fund_calls.append(amount)
        self.ledger_missing = False
        self.balance = amount

    async def list_providers(self) -> list[str]:
        return [PROVIDER_ID]

    async def get_service_metadata(self, provider_id: str) -> ProviderEndpoint:
        self.metadata_calls.append(provider_id)
        return self.endpoint

    async def sign_request(self, provider_id: str, payload: str) -> Mapping[str, str]:
        headers = {"Authorization": f"signature-{next(self._signatures)}"}
        self.sign_calls.append((provider_id, payload, headers))
        self.events.append("sign")
        return headers

    async def settle_fee(self, provider_id: str, amount: Decimal) -> None:
        self.settle_calls.append((provider_id, amount))
        self.events.append(f"settle:{amount}")
        if self.settle_error is not None:
            raise self.settle_error


class ScriptedProviderClient:
    """Stands in for ``ProviderClient``; replays bodies or raises exceptions."""

    def __init__(self, responses: list[Any], events: list[str] | None = None) -> None:
        self.responses = list(responses)
        self.events = events if events is not None else []
        self.calls: list[dict[str, Any]] = []

    async def post_chat_completion(self, endpoint, headers, prompt, model=None):
        self.calls.append({"endpoint": endpoint, "headers": dict(headers), "prompt": prompt, "model": model})
        self.events.append("call")
        if not self.responses:
            raise AssertionError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        pass


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def events() -> list[str]:
    return []


@pytest.fixture
def fake_broker(events: list[str]) -> FakeBroker:
    return FakeBroker(events=events)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_orchestrator(fake_broker: FakeBroker, recording_sleep: RecordingSleep, events: list[str]) -> Callable[..., tuple[InferenceOrchestrator, ScriptedProviderClient]]:
    """Build an orchestrator around ``fake_broker`` with scripted responses."""

    def _make(responses: list[Any], **kwargs: Any) -> tuple[InferenceOrchestrator, ScriptedProviderClient]:
        client = ScriptedProviderClient(responses, events=events)
        orchestrator = InferenceOrchestrator(
            directory=fake_broker,
            signer=fake_broker,
            settler=fake_broker,
            client=client,
            sleep=recording_sleep,
            **kwargs,
        )
        return orchestrator, client

    return _make


@pytest.fixture
def test_settings() -> InferenceSettings:
    return InferenceSettings(
        private_key="0xdeadbeef",
        provider_address=PROVIDER_ID,
        max_retries=5,
        retry_delay_seconds=0.0,
        timeout_seconds=5.0,
    )


@pytest.fixture
def provider_id() -> str:
    return PROVIDER_ID


@pytest.fixture
def completion() -> Callable[[str], dict[str, Any]]:
    """Factory for successful chat-completion bodies."""
    return _completion


@pytest.fixture
def fee_error() -> Callable[..., dict[str, Any]]:
    """Factory for fee-shortfall error bodies."""
    return _fee_error


@pytest.fixture
def make_broker() -> Callable[..., FakeBroker]:
    """Factory for extra ``FakeBroker`` instances with custom state."""
    return FakeBroker


@pytest.fixture
def mock_http_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory for an AsyncClient whose requests are answered by a handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def broker_bundle() -> Callable[[FakeBroker], ComputeBroker]:
    """Wraps a ``FakeBroker`` as the ``ComputeBroker`` the app expects."""
    return ComputeBroker.from_client
