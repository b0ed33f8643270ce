"""Trading-signal extraction from free-text channel messages."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from core.inference.orchestrator import InferenceOrchestrator
from core.signals.parsing import parse_strict_object, to_decimal
from core.signals.prompts import build_extraction_prompt
from core.types import SignalDirection, TradingSignal

logger = logging.getLogger(__name__)

TAKE_PROFIT_KEY = re.compile(r"^tp(\d+)$", re.IGNORECASE)

_DIRECTION_ALIASES: dict[str, SignalDirection] = {
    "buy": "buy",
    "long": "buy",
    "sell": "sell",
    "short": "sell",
}


def normalize_direction(value: Any) -> Optional[SignalDirection]:
    if not isinstance(value, str):
        return None
    return _DIRECTION_ALIASES.get(value.strip().lower())


def signal_from_dict(data: dict[str, Any]) -> TradingSignal | None:
    """Build a ``TradingSignal`` from the model's JSON object.

    Returns None when the token symbol is missing. The symbol is kept as the
    model wrote it apart from surrounding whitespace. Take-profit targets keep
    their ``tpN`` index, so a dropped ``tp1`` leaves ``tp2`` as ``tp2``.
    """
    symbol = data.get("tokenSymbol")
    if not isinstance(symbol, str) or not symbol.strip():
        return None

    targets = []
    for key, value in data.items():
        match = TAKE_PROFIT_KEY.match(key)
        if match is None:
            continue
        target = to_decimal(value)
        if target is not None:
            targets.append((int(match.group(1)), target))
    targets.sort(key=lambda item: item[0])

    return TradingSignal(
        token_symbol=symbol.strip(),
        signal=normalize_direction(data.get("signal")),
        take_profits=tuple(targets),
        stop_loss=to_decimal(data.get("sl")),
    )


def parse_signal(raw_text: str) -> TradingSignal | None:
    """Strictly parse a model reply; anything but a pure JSON object is None."""
    data = parse_strict_object(raw_text)
    if data is None:
        return None
    return signal_from_dict(data)


class SignalExtractor:
    """Extracts structured trading signals via paid inference."""

    def __init__(self, orchestrator: InferenceOrchestrator, provider_id: str) -> None:
        self.orchestrator = orchestrator
        self.provider_id = provider_id

    async def extract_raw(self, message: str) -> str:
        """Return the model's unparsed reply for ``message``.

        Raises:
            ExhaustedRetries: If inference fails on every attempt
        """
        prompt = build_extraction_prompt(message)
        return await self.orchestrator.infer(self.provider_id, prompt)

    async def extract_signal(self, message: str) -> TradingSignal | None:
        """Extract a signal; malformed model output yields None, not an error."""
        raw_text = await self.extract_raw(message)
        signal = parse_signal(raw_text)
        if signal is None:
            logger.warning("Model reply did not contain a valid signal: %.200s", raw_text)
        return signal
