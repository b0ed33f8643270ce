"""Inference module types — endpoint, response variants and attempt records."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Union


# ---------------------------------------------------------------------------
# Provider endpoint
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderEndpoint:
    """Service metadata for one compute provider.

    Looked up from the service directory for every top-level request and
    never cached across requests.
    """

    url: str  # e.g. "https://provider.example/v1/proxy"
    model_id: str

    @property
    def completions_url(self) -> str:
        return f"{self.url.rstrip('/')}/chat/completions"


# ---------------------------------------------------------------------------
# Classified provider responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    """Provider returned a non-empty assistant message."""

    text: str


@dataclass(frozen=True)
class FeeShortfall:
    """Provider rejected the call until an outstanding fee is settled."""

    amount: Decimal
    detail: str


@dataclass(frozen=True)
class OtherFailure:
    """Any other error, malformed body or transport failure."""

    detail: str


ProviderResponse = Union[Success, FeeShortfall, OtherFailure]


class NextAction(str, Enum):
    """What the retry loop does after an attempt has been classified."""

    RETURN = "return"
    SETTLE_AND_RETRY = "settle_and_retry"
    RETRY = "retry"
    GIVE_UP = "give_up"


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


@dataclass
class InferenceAttempt:
    """A single request/response round inside the retry loop."""

    attempt_number: int
    headers: Mapping[str, str] = field(default_factory=dict)
    raw_response: Optional[Any] = None
    outcome: Optional[ProviderResponse] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)
