"""Multi-signal performance summaries."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from core.inference.orchestrator import InferenceOrchestrator
from core.signals.parsing import find_json_span
from core.signals.prompts import build_summary_prompt
from core.types import SignalPnl, SignalSummary

logger = logging.getLogger(__name__)


class SummaryError(Exception):
    """Base exception for summary parsing failures."""


class NoJsonFound(SummaryError):
    """The model reply contains no ``{...}`` span."""


class MalformedJson(SummaryError):
    """The ``{...}`` span is not a valid JSON object."""


def parse_summary(raw_text: str) -> SignalSummary:
    """Locate and parse the JSON object embedded in ``raw_text``.

    The object is kept exactly as the model returned it; no keys are added
    or filled in.

    Raises:
        NoJsonFound: No opening brace in the reply
        MalformedJson: The braced span does not parse to an object
    """
    span = find_json_span(raw_text)
    if span is None:
        # An opening brace with no closing one is a broken object, not a missing one
        start = (raw_text or "").find("{")
        if start == -1:
            raise NoJsonFound("No JSON found in response")
        span = raw_text[start:]
    try:
        data = json.loads(span)
    except json.JSONDecodeError as e:
        raise MalformedJson(f"Failed to parse summary: {e}") from e
    if not isinstance(data, dict):
        raise MalformedJson(f"Summary is a {type(data).__name__}, expected an object")

    if "insights" not in data:
        logger.warning("Summary reply has no insights field")
    insights = data.get("insights")
    return SignalSummary(
        average_pnl=data.get("averagePnl"),
        insights=insights if isinstance(insights, str) else None,
        fields=data,
    )


class SummaryBuilder:
    """Aggregates per-token P&L into a model-written summary."""

    def __init__(self, orchestrator: InferenceOrchestrator, provider_id: str) -> None:
        self.orchestrator = orchestrator
        self.provider_id = provider_id

    async def build_summary(self, average_pnl: Any, signals: Sequence[SignalPnl]) -> SignalSummary:
        """Ask the model for a summary and parse it.

        An empty ``signals`` list is allowed; the summary is just less useful.

        Raises:
            ExhaustedRetries: If inference fails on every attempt
            NoJsonFound: If the reply contains no JSON object
            MalformedJson: If the embedded JSON does not parse
        """
        if not signals:
            logger.warning("Building summary with no signals")
        prompt = build_summary_prompt(average_pnl, signals)
        raw_text = await self.orchestrator.infer(self.provider_id, prompt)
        return parse_summary(raw_text)
