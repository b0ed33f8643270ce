"""Pure classification of provider chat-completion bodies.

The retry loop only ever branches on the closed set of variants returned
here, never on raw strings.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from core.inference.errors import InferenceError, MalformedResponse, RecoverableFeeError
from core.inference.types import FeeShortfall, OtherFailure, ProviderResponse, Success

SETTLE_FEE_MARKER = "settleFee"
FEE_UNIT = "A0GI"
FEE_AMOUNT_PATTERN = re.compile(r"expected ([\d.]+) " + FEE_UNIT)


def extract_message_text(payload: Any) -> str | None:
    """Return ``choices[0].message.content`` if it is a non-empty string."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def extract_error_text(payload: Any) -> str | None:
    """Return the provider's error text, accepting a string or ``{"message": ...}``."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str):
            return message
    return None


def parse_fee_amount(error_text: str) -> Decimal | None:
    """Extract the shortfall amount from a ``settleFee`` error, if present."""
    if SETTLE_FEE_MARKER not in error_text:
        return None
    match = FEE_AMOUNT_PATTERN.search(error_text)
    if match is None:
        return None
    try:
        amount = Decimal(match.group(1))
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def classify_response(payload: Any) -> ProviderResponse:
    """Classify a decoded provider body.

    Args:
        payload: JSON-decoded response body (any type)

    Returns:
        ``Success``, ``FeeShortfall`` or ``OtherFailure``
    """
    text = extract_message_text(payload)
    if text is not None:
        return Success(text=text)

    error_text = extract_error_text(payload)
    if error_text is not None:
        amount = parse_fee_amount(error_text)
        if amount is not None:
            return FeeShortfall(amount=amount, detail=error_text)
        return OtherFailure(detail=error_text)

    if not isinstance(payload, dict):
        return OtherFailure(detail=f"Unexpected response type: {type(payload).__name__}")
    return OtherFailure(detail=f"Response has no message content (keys: {sorted(payload)})")


def outcome_to_error(outcome: ProviderResponse, provider_id: str | None = None) -> InferenceError | None:
    """Turn a failed outcome into the matching diagnostic exception."""
    if isinstance(outcome, FeeShortfall):
        return RecoverableFeeError(outcome.detail, outcome.amount, provider_id)
    if isinstance(outcome, OtherFailure):
        return MalformedResponse(outcome.detail, provider_id)
    return None
