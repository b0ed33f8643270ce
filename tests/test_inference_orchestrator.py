"""Unit tests for the inference retry / fee-settlement loop."""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.inference.errors import ExhaustedRetries, MalformedResponse, TransportError
from core.inference.orchestrator import next_action
from core.inference.types import FeeShortfall, NextAction, OtherFailure, ProviderEndpoint, Success


# ---------------------------------------------------------------------------
# Step runner
# ---------------------------------------------------------------------------


def test_next_action_mapping():
    assert next_action(Success(text="x"), 1, 5) is NextAction.RETURN
    assert next_action(FeeShortfall(amount=Decimal("1"), detail=""), 1, 5) is NextAction.SETTLE_AND_RETRY
    assert next_action(OtherFailure(detail=""), 1, 5) is NextAction.RETRY
    assert next_action(OtherFailure(detail=""), 5, 5) is NextAction.GIVE_UP


# ---------------------------------------------------------------------------
# Retry bounds
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [1, 3, 5])
async def test_all_failures_issue_exactly_max_retries_calls(make_orchestrator, recording_sleep, provider_id, max_retries):
    orchestrator, client = make_orchestrator(
        [{"error": "model overloaded"}] * max_retries,
        max_retries=max_retries,
    )

    with pytest.raises(ExhaustedRetries) as exc_info:
        await orchestrator.infer(provider_id, "prompt")

    assert len(client.calls) == max_retries
    assert exc_info.value.attempts == max_retries
    # Fixed delay between attempts, none after the last one
    assert recording_sleep.delays == [1.0] * (max_retries - 1)


@pytest.mark.asyncio
async def test_success_on_attempt_k_stops_early(make_orchestrator, fake_broker, provider_id, completion):
    orchestrator, client = make_orchestrator(
        [{"error": "busy"}, {"unexpected": True}, completion("signal json"), completion("never used")]
    )

    result = await orchestrator.infer(provider_id, "prompt")

    assert result == "signal json"
    assert len(client.calls) == 3
    assert len(fake_broker.sign_calls) == 3
    assert len(client.responses) == 1


@pytest.mark.asyncio
async def test_first_attempt_success_does_not_sleep(make_orchestrator, recording_sleep, provider_id, completion):
    orchestrator, client = make_orchestrator([completion("ok")])

    assert await orchestrator.infer(provider_id, "prompt") == "ok"
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_exhaustion_keeps_last_diagnostic(make_orchestrator, provider_id):
    orchestrator, _ = make_orchestrator(
        [{"error": "first"}, TransportError("connection reset")],
        max_retries=2,
    )

    with pytest.raises(ExhaustedRetries) as exc_info:
        await orchestrator.infer(provider_id, "prompt")

    last_error = exc_info.value.last_error
    assert isinstance(last_error, TransportError)
    assert last_error.provider_id == provider_id
    assert "connection reset" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_and_malformed_errors_are_retried(make_orchestrator, provider_id, completion):
    orchestrator, client = make_orchestrator(
        [TransportError("timeout"), MalformedResponse("not json"), RuntimeError("boom"), completion("ok")]
    )

    assert await orchestrator.infer(provider_id, "prompt") == "ok"
    assert len(client.calls) == 4


@pytest.mark.asyncio
async def test_signer_failure_counts_as_failed_attempt(make_orchestrator, fake_broker, provider_id, completion):
    orchestrator, client = make_orchestrator([completion("ok")])
    original_sign = fake_broker.sign_request
    calls = 0

    async def flaky_sign(provider_id, payload):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("signer unavailable")
        return await original_sign(provider_id, payload)

    fake_broker.sign_request = flaky_sign

    assert await orchestrator.infer(provider_id, "prompt") == "ok"
    assert calls == 2
    assert len(client.calls) == 1


# ---------------------------------------------------------------------------
# Fee settlement
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fee_shortfall_settles_once_before_next_headers(make_orchestrator, fake_broker, events, provider_id, completion, fee_error):
    orchestrator, client = make_orchestrator([fee_error("0.000123"), completion("ok")])

    assert await orchestrator.infer(provider_id, "prompt") == "ok"

    assert fake_broker.settle_calls == [(provider_id, Decimal("0.000123"))]
    assert events == ["sign", "call", "settle:0.000123", "sign", "call"]


@pytest.mark.asyncio
async def test_no_settlement_without_fee_error(make_orchestrator, fake_broker, provider_id, completion):
    orchestrator, _ = make_orchestrator([{"error": "busy"}, completion("ok")])

    await orchestrator.infer(provider_id, "prompt")

    assert fake_broker.settle_calls == []


@pytest.mark.asyncio
async def test_settlement_failure_is_not_fatal(make_orchestrator, fake_broker, provider_id, completion, fee_error):
    fake_broker.settle_error = RuntimeError("insufficient funds")
    orchestrator, client = make_orchestrator([fee_error("0.5"), fee_error("0.5"), completion("ok")])

    assert await orchestrator.infer(provider_id, "prompt") == "ok"
    assert len(fake_broker.settle_calls) == 2
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_settlement_cap_skips_large_fees(make_orchestrator, fake_broker, provider_id, completion, fee_error):
    orchestrator, _ = make_orchestrator(
        [fee_error("5"), fee_error("0.01"), completion("ok")],
        max_settlement_fee=Decimal("1"),
    )

    assert await orchestrator.infer(provider_id, "prompt") == "ok"
    assert fake_broker.settle_calls == [(provider_id, Decimal("0.01"))]


@pytest.mark.asyncio
async def test_zero_fee_is_never_paid(make_orchestrator, fake_broker, provider_id, completion, fee_error):
    orchestrator, _ = make_orchestrator([fee_error("0"), completion("ok")])

    await orchestrator.infer(provider_id, "prompt")

    assert fake_broker.settle_calls == []


@pytest.mark.asyncio
async def test_repeated_fee_errors_exhaust_with_one_settlement_each(make_orchestrator, fake_broker, provider_id, fee_error):
    orchestrator, client = make_orchestrator([fee_error("0.1")] * 5)

    with pytest.raises(ExhaustedRetries):
        await orchestrator.infer(provider_id, "prompt")

    assert len(client.calls) == 5
    assert len(fake_broker.settle_calls) == 5


# ---------------------------------------------------------------------------
# Headers and endpoint
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_headers_are_fresh_per_attempt(make_orchestrator, fake_broker, provider_id, completion):
    orchestrator, client = make_orchestrator([{"error": "a"}, {"error": "b"}, completion("ok")])

    await orchestrator.infer(provider_id, "the prompt")

    sent = [call["headers"]["Authorization"] for call in client.calls]
    assert sent == ["signature-1", "signature-2", "signature-3"]
    assert len(set(sent)) == len(sent)
    # Signer is always scoped to (provider, prompt)
    assert all(pid == provider_id and payload == "the prompt" for pid, payload, _ in fake_broker.sign_calls)


@pytest.mark.asyncio
async def test_endpoint_is_looked_up_per_request(make_orchestrator, fake_broker, provider_id, completion):
    orchestrator, client = make_orchestrator([completion("a"), completion("b")])

    await orchestrator.infer(provider_id, "one")
    await orchestrator.infer(provider_id, "two")

    assert fake_broker.metadata_calls == [provider_id, provider_id]
    assert client.calls[0]["endpoint"] == fake_broker.endpoint


@pytest.mark.asyncio
async def test_explicit_endpoint_and_model_skip_lookup(make_orchestrator, fake_broker, provider_id, completion):
    orchestrator, client = make_orchestrator([completion("ok")])
    endpoint = ProviderEndpoint(url="https://other.test", model_id="default-model")

    await orchestrator.infer(provider_id, "prompt", endpoint=endpoint, model="override")

    assert fake_broker.metadata_calls == []
    assert client.calls[0]["endpoint"] is endpoint
    assert client.calls[0]["model"] == "override"


def test_max_retries_must_be_positive(make_orchestrator):
    with pytest.raises(ValueError):
        make_orchestrator([], max_retries=0)
