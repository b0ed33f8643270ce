"""Prompt templates for signal extraction and summarization.

Both prompts are sent as the single system message of a chat completion.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence

from core.types import SignalPnl

# ---------------------------------------------------------------------------
# Signal extraction
# ---------------------------------------------------------------------------

EXTRACTION_TEMPLATE = """\
Extract trading signal data from the given message.
Return only a valid JSON object with no additional text, markdown, or explanations. Do not include ```json or any other formatting.

{{
  "tokenSymbol": "BTC",
  "signal": "buy",
  "tp1": 1000,
  "tp2": 2000,
  "sl": 800
}}

{message}"""

# ---------------------------------------------------------------------------
# Multi-signal summary
# ---------------------------------------------------------------------------

SUMMARY_TEMPLATE = """\
Generate a JSON object with the following structure based on the provided trading signals data:

{{
  "averagePnl": {average_pnl},
  "insights": "Provide a concise summary of the performance of the tokens, highlighting key trends and notable performers."
}}

Data:
- Average P&L: {average_pnl}%
- Signals: {signals}

Your response must be only the JSON object with the insights filled in appropriately. Do not include any additional text, explanations, or markdown."""


def _format_number(value: Any) -> str:
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value == value.to_integral() else str(value)
    return str(value)


def build_extraction_prompt(message: str) -> str:
    return EXTRACTION_TEMPLATE.format(message=message)


def build_summary_prompt(average_pnl: Any, signals: Sequence[SignalPnl]) -> str:
    signal_list = ", ".join(f"{s.token}: {_format_number(s.pnl)}" for s in signals)
    return SUMMARY_TEMPLATE.format(average_pnl=_format_number(average_pnl), signals=signal_list)
