"""Summarizer gateway — text in, validated structured summary out."""

from worklog.summarizer.gateway import ClaudeSummarizer, Summarizer, parse_summary
from worklog.summarizer.models import (
    PatternSummary,
    PortfolioSummary,
    Summary,
    SummaryItem,
    SummaryKind,
)

__all__ = [
    "ClaudeSummarizer",
    "PatternSummary",
    "PortfolioSummary",
    "Summarizer",
    "Summary",
    "SummaryItem",
    "SummaryKind",
    "parse_summary",
]
