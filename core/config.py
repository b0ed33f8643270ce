from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

DEFAULT_PROVIDER_ADDRESS = "0x3feE5a4dd5FDb8a32dDA97Bed899830605dBD9D3"
DEFAULT_RPC_URL = "https://evmrpc-testnet.0g.ai"
DEFAULT_PORT = 3001


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _parse_decimal(env: Mapping[str, str], name: str, default: Optional[Decimal]) -> Optional[Decimal]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as e:
        raise ValueError(f"{name} must be a decimal, got {raw!r}") from e
    if not value.is_finite():
        raise ValueError(f"{name} must be finite, got {raw!r}")
    return value


@dataclass(frozen=True)
class InferenceSettings:
    """Process configuration for the inference service.

    `private_key` comes from environment (PRIVATE_KEY) and is only handed to
    the broker factory. Do not log it.
    """

    private_key: Optional[str] = field(default=None, repr=False)
    provider_address: str = DEFAULT_PROVIDER_ADDRESS
    rpc_url: str = DEFAULT_RPC_URL
    broker_factory: Optional[str] = None
    port: int = DEFAULT_PORT
    max_retries: int = 5
    retry_delay_seconds: float = 1.0
    timeout_seconds: float = 60.0
    initial_balance: Decimal = Decimal("0.05")
    max_settlement_fee: Optional[Decimal] = None
    allowed_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "InferenceSettings":
        """Build settings from environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if env is None else env

        origins_raw = env.get("ALLOWED_ORIGINS", "")
        origins = tuple(o.strip() for o in origins_raw.split(",") if o.strip()) or ("*",)

        settings = cls(
            private_key=env.get("PRIVATE_KEY") or None,
            provider_address=env.get("PROVIDER_ADDRESS") or DEFAULT_PROVIDER_ADDRESS,
            rpc_url=env.get("RPC_URL") or DEFAULT_RPC_URL,
            broker_factory=env.get("BROKER_FACTORY") or None,
            port=_parse_int(env, "PORT", DEFAULT_PORT),
            max_retries=_parse_int(env, "INFERENCE_MAX_RETRIES", 5),
            retry_delay_seconds=_parse_float(env, "INFERENCE_RETRY_DELAY_SECONDS", 1.0),
            timeout_seconds=_parse_float(env, "INFERENCE_TIMEOUT_SECONDS", 60.0),
            initial_balance=_parse_decimal(env, "LEDGER_INITIAL_BALANCE", Decimal("0.05")),
            max_settlement_fee=_parse_decimal(env, "MAX_SETTLEMENT_FEE", None),
            allowed_origins=origins,
        )
        if settings.max_retries < 1:
            raise ValueError("INFERENCE_MAX_RETRIES must be >= 1")
        return settings
