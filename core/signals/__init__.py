"""Signal extraction and multi-signal summaries built on paid inference."""

from core.signals.extractor import SignalExtractor, parse_signal
from core.signals.summary import (
    MalformedJson,
    NoJsonFound,
    SummaryBuilder,
    SummaryError,
    parse_summary,
)

__all__ = [
    "SignalExtractor",
    "parse_signal",
    "MalformedJson",
    "NoJsonFound",
    "SummaryBuilder",
    "SummaryError",
    "parse_summary",
]
