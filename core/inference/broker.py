"""Compute-network broker collaborators.

The broker SDK (wallet, ledger contract, request signing) is an external
collaborator. The core only talks to it through the four protocols below,
bundled into a ``ComputeBroker`` that is built once by a factory and passed
explicitly to whoever needs it.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from core.inference.errors import BrokerConfigurationError, LedgerProvisioningError
from core.inference.types import ProviderEndpoint

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_BALANCE = Decimal("0.05")


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class LedgerGateway(Protocol):
    async def get_balance(self) -> Decimal:
        """Return the prepaid balance; raise if no ledger exists yet."""

    async def fund_ledger(self, amount: Decimal) -> None:
        """Create (or top up) the ledger with ``amount``."""


@runtime_checkable
class ServiceDirectory(Protocol):
    async def list_providers(self) -> Sequence[Any]:
        """List the inference providers registered on the network."""

    async def get_service_metadata(self, provider_id: str) -> ProviderEndpoint:
        """Resolve a provider id to its endpoint URL and model id."""


@runtime_checkable
class RequestSigner(Protocol):
    async def sign_request(self, provider_id: str, payload: str) -> Mapping[str, str]:
        """Return headers valid for exactly one request carrying ``payload``."""


@runtime_checkable
class FeeSettler(Protocol):
    async def settle_fee(self, provider_id: str, amount: Decimal) -> None:
        """Pay ``amount`` owed to ``provider_id``."""


@dataclass
class ComputeBroker:
    """Bundle of the broker collaborators used by one process."""

    ledger: LedgerGateway
    directory: ServiceDirectory
    signer: RequestSigner
    settler: FeeSettler
    close_callback: Optional[Callable[[], Awaitable[None]]] = None

    @classmethod
    def from_client(cls, client: Any) -> "ComputeBroker":
        """Wrap a single SDK object that implements all four protocols."""
        missing = [
            proto.__name__
            for proto in (LedgerGateway, ServiceDirectory, RequestSigner, FeeSettler)
            if not isinstance(client, proto)
        ]
        if missing:
            raise BrokerConfigurationError(
                f"{type(client).__name__} does not implement: {', '.join(missing)}"
            )
        close = getattr(client, "close", None)
        return cls(
            ledger=client,
            directory=client,
            signer=client,
            settler=client,
            close_callback=close if inspect.iscoroutinefunction(close) else None,
        )

    async def close(self) -> None:
        if self.close_callback is not None:
            await self.close_callback()


# ---------------------------------------------------------------------------
# Ledger provisioning
# ---------------------------------------------------------------------------


class LedgerProvisioner:
    """One-time, idempotent check that a funded ledger exists.

    Concurrent callers share a lock so the first lookup failure triggers at
    most one ``fund_ledger`` call for the lifetime of the provisioner.
    """

    def __init__(self, ledger: LedgerGateway, initial_balance: Decimal = DEFAULT_INITIAL_BALANCE) -> None:
        self.ledger = ledger
        self.initial_balance = initial_balance
        self._provisioned = False
        self._lock: asyncio.Lock | None = None  # Lazy-initialized to bind to the running loop

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def provisioned(self) -> bool:
        return self._provisioned

    async def ensure_funded(self) -> None:
        """Read the balance, funding a new ledger if the lookup fails.

        Raises:
            LedgerProvisioningError: If funding the new ledger fails
        """
        if self._provisioned:
            return

        async with self._get_lock():
            if self._provisioned:
                return
            try:
                balance = await self.ledger.get_balance()
                logger.info("Using existing ledger with balance: %s", balance)
            except Exception as e:
                logger.info("No existing ledger found (%s). Creating new ledger...", e)
                try:
                    await self.ledger.fund_ledger(self.initial_balance)
                except Exception as fund_error:
                    raise LedgerProvisioningError(
                        f"Failed to fund new ledger with {self.initial_balance}: {fund_error}"
                    ) from fund_error
                logger.info("New account created and funded with initial balance: %s", self.initial_balance)
            self._provisioned = True

    async def balance(self) -> Decimal | None:
        """Remaining ledger balance, or ``None`` if it cannot be read."""
        try:
            return await self.ledger.get_balance()
        except Exception as e:
            logger.warning("Failed to read ledger balance: %s", e)
            return None


# ---------------------------------------------------------------------------
# Factory loading
# ---------------------------------------------------------------------------

BrokerFactory = Callable[..., Any]


def load_broker_factory(path: str) -> BrokerFactory:
    """Resolve a ``module:callable`` path to the broker factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise BrokerConfigurationError(f"Broker factory must look like 'module:callable', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise BrokerConfigurationError(f"Cannot import broker module {module_name!r}: {e}") from e
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise BrokerConfigurationError(f"{module_name!r} has no callable {attr!r}")
    return factory


async def create_broker(factory: BrokerFactory, **kwargs: Any) -> ComputeBroker:
    """Call the factory (sync or async) and normalise the result."""
    result = factory(**kwargs)
    if inspect.isawaitable(result):
        result = await result
    if isinstance(result, ComputeBroker):
        return result
    return ComputeBroker.from_client(result)
