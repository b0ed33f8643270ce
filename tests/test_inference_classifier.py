"""Unit tests for provider response classification."""

from __future__ import annotations

from decimal import Decimal

from core.inference.classifier import (
    classify_response,
    outcome_to_error,
    parse_fee_amount,
)
from core.inference.errors import MalformedResponse, RecoverableFeeError
from core.inference.types import FeeShortfall, OtherFailure, Success


def test_classify_success(completion):
    outcome = classify_response(completion('{"tokenSymbol": "BTC"}'))
    assert outcome == Success(text='{"tokenSymbol": "BTC"}')


def test_classify_empty_content_is_failure(completion):
    outcome = classify_response(completion(""))
    assert isinstance(outcome, OtherFailure)


def test_classify_fee_shortfall_extracts_amount(fee_error):
    outcome = classify_response(fee_error("0.000123"))
    assert isinstance(outcome, FeeShortfall)
    assert outcome.amount == Decimal("0.000123")
    assert "settleFee" in outcome.detail


def test_classify_fee_error_without_amount_is_other_failure():
    outcome = classify_response({"error": "please call settleFee first"})
    assert isinstance(outcome, OtherFailure)


def test_classify_amount_without_settle_marker_is_other_failure():
    outcome = classify_response({"error": "expected 0.5 A0GI"})
    assert isinstance(outcome, OtherFailure)


def test_classify_nested_error_message():
    outcome = classify_response({"error": {"message": "settleFee: expected 2.5 A0GI"}})
    assert outcome == FeeShortfall(amount=Decimal("2.5"), detail="settleFee: expected 2.5 A0GI")


def test_classify_malformed_shapes():
    """Unexpected shapes never raise."""
    for payload in (None, [], "text", 42, {}, {"choices": []}, {"choices": [{"message": None}]}):
        assert isinstance(classify_response(payload), OtherFailure)


def test_classify_success_wins_over_error_field(completion):
    payload = {**completion("ok"), "error": "settleFee expected 1 A0GI"}
    assert classify_response(payload) == Success(text="ok")


def test_parse_fee_amount_rejects_garbage_number():
    assert parse_fee_amount("settleFee expected 1.2.3 A0GI") is None
    assert parse_fee_amount("settleFee expected 0.01 A0GI") == Decimal("0.01")


def test_outcome_to_error():
    fee = outcome_to_error(FeeShortfall(amount=Decimal("1"), detail="settleFee"), "0xabc")
    assert isinstance(fee, RecoverableFeeError)
    assert fee.amount == Decimal("1")
    assert fee.provider_id == "0xabc"

    other = outcome_to_error(OtherFailure(detail="boom"))
    assert isinstance(other, MalformedResponse)

    assert outcome_to_error(Success(text="ok")) is None
