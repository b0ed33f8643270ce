"""JSON helpers for model replies."""

from __future__ import annotations

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

# Greedy: first "{" to last "}", across newlines
JSON_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


def parse_strict_object(raw_text: str) -> dict[str, Any] | None:
    """Parse a reply that must be exactly one JSON object.

    Returns:
        Parsed dict, or None if the text is empty, not JSON, or not an object
    """
    if not raw_text or not raw_text.strip():
        return None
    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse JSON reply: %s", e)
        return None
    if not isinstance(parsed, dict):
        logger.warning("JSON reply is a %s, expected an object", type(parsed).__name__)
        return None
    return parsed


def find_json_span(raw_text: str) -> str | None:
    """Return the greedy ``{...}`` span embedded in ``raw_text``, if any."""
    match = JSON_OBJECT_SPAN.search(raw_text or "")
    return match.group(0) if match else None


def to_decimal(value: Any) -> Decimal | None:
    """Coerce a JSON number or numeric string (``"$54"``, ``"1,000"``) to Decimal."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        text = str(value)
    elif isinstance(value, str):
        text = value.strip().lstrip("$").replace(",", "")
    else:
        return None
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    return result if result.is_finite() else None
