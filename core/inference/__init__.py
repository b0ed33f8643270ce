"""Paid inference against a metered compute network.

    ┌──────────────┐
    │ Orchestrator │  ← sign → call → classify → settle → retry
    └──────┬───────┘
           │
    ┌──────┴──────────────────────────────┐
    │            │            │           │
    ▼            ▼            ▼           ▼
  Signer     Provider     Classifier   Settler
  (broker)   (httpx)      (pure)       (broker)

Submodules:
- types:        ProviderEndpoint, response variants, InferenceAttempt
- errors:       Error taxonomy
- broker:       Collaborator protocols, ComputeBroker, LedgerProvisioner
- classifier:   Response body → Success / FeeShortfall / OtherFailure
- client:       One chat-completion HTTP call
- orchestrator: InferenceOrchestrator
"""

from core.inference.broker import (
    ComputeBroker,
    FeeSettler,
    LedgerGateway,
    LedgerProvisioner,
    RequestSigner,
    ServiceDirectory,
)
from core.inference.classifier import classify_response
from core.inference.client import ProviderClient
from core.inference.errors import (
    ExhaustedRetries,
    InferenceError,
    LedgerProvisioningError,
    MalformedResponse,
    RecoverableFeeError,
    TransportError,
)
from core.inference.orchestrator import InferenceOrchestrator
from core.inference.types import (
    FeeShortfall,
    InferenceAttempt,
    OtherFailure,
    ProviderEndpoint,
    Success,
)

__all__ = [
    "ComputeBroker",
    "FeeSettler",
    "LedgerGateway",
    "LedgerProvisioner",
    "RequestSigner",
    "ServiceDirectory",
    "classify_response",
    "ProviderClient",
    "ExhaustedRetries",
    "InferenceError",
    "LedgerProvisioningError",
    "MalformedResponse",
    "RecoverableFeeError",
    "TransportError",
    "InferenceOrchestrator",
    "FeeShortfall",
    "InferenceAttempt",
    "OtherFailure",
    "ProviderEndpoint",
    "Success",
]
