"""Error taxonomy for paid inference calls.

Only ``ExhaustedRetries`` and ``LedgerProvisioningError`` are expected to
cross the orchestrator boundary; the other errors are recorded per attempt
and handled inside the retry loop.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class InferenceError(Exception):
    """Base exception for inference orchestration errors."""

    def __init__(self, message: str, provider_id: str | None = None):
        super().__init__(message)
        self.provider_id = provider_id


class TransportError(InferenceError):
    """Network or HTTP failure while talking to the provider (retried)."""

    def __init__(self, message: str, provider_id: str | None = None, status_code: int | None = None):
        super().__init__(message, provider_id)
        self.status_code = status_code


class MalformedResponse(InferenceError):
    """Provider body was not JSON or had an unexpected shape (retried)."""


class RecoverableFeeError(InferenceError):
    """Provider asked for an outstanding fee to be settled before retrying."""

    def __init__(self, message: str, amount: Decimal, provider_id: str | None = None):
        super().__init__(message, provider_id)
        self.amount = amount


class ExhaustedRetries(InferenceError):
    """All attempts failed; no partial text is returned."""

    def __init__(
        self,
        attempts: int,
        provider_id: str | None = None,
        last_error: Optional[Exception] = None,
    ):
        message = f"Failed to get valid response after {attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message, provider_id)
        self.attempts = attempts
        self.last_error = last_error


class LedgerProvisioningError(InferenceError):
    """The prepaid ledger could neither be read nor funded."""


class BrokerConfigurationError(InferenceError):
    """The broker factory could not be resolved or returned the wrong type."""
