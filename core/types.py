from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal, Optional, Sequence

SignalDirection = Literal["buy", "sell"]


@dataclass(frozen=True)
class TradingSignal:
    token_symbol: str
    signal: Optional[SignalDirection]
    take_profits: tuple[tuple[int, Decimal], ...] = ()  # (N, price) for each tpN, ascending N
    stop_loss: Optional[Decimal] = None

    def target(self, index: int) -> Optional[Decimal]:
        """Price of ``tp<index>``, or None if the model gave none."""
        return dict(self.take_profits).get(index)

    def to_dict(self) -> dict[str, Any]:
        """Serialise back to the wire shape the model was asked to emit."""
        payload: dict[str, Any] = {
            "tokenSymbol": self.token_symbol,
            "signal": self.signal,
        }
        for index, target in self.take_profits:
            payload[f"tp{index}"] = float(target)
        payload["sl"] = float(self.stop_loss) if self.stop_loss is not None else None
        return payload


@dataclass(frozen=True)
class SignalPnl:
    token: str
    pnl: Decimal


@dataclass(frozen=True)
class SignalSummaryRequest:
    average_pnl: Decimal
    signals: Sequence[SignalPnl]


@dataclass(frozen=True)
class SignalSummary:
    average_pnl: Any
    insights: Optional[str]
    fields: dict[str, Any] = field(default_factory=dict)  # the object exactly as the model returned it

    def to_dict(self) -> dict[str, Any]:
        return dict(self.fields)
