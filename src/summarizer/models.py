"""Summarizer contract types.

The gateway accepts a list of dated work items and returns one of two
fixed schemas.  A response is accepted only if it validates completely.
"""

from __future__ import annotations

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class SummaryKind(StrEnum):
    PATTERN = "pattern"
    PORTFOLIO = "portfolio"


class SummaryItem(BaseModel):
    """One dated entry handed to the summarizer."""

    date: date
    contents: list[str]


class _Summary(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)


class PatternSummary(_Summary):
    """Pattern analysis over five entries."""

    pattern: str = Field(min_length=1)
    workflow: str = Field(min_length=1)
    keywords: list[str] = Field(min_length=1)
    insight: str = Field(min_length=1)


class PortfolioSummary(_Summary):
    """Portfolio card over twenty entries."""

    title: str = Field(min_length=1)
    tasks: list[str] = Field(min_length=1)
    results: list[str] = Field(default_factory=list)
    thinking_summary: str = Field(min_length=1)
    keywords: list[str] = Field(default_factory=list)


Summary = PatternSummary | PortfolioSummary

SCHEMAS: dict[SummaryKind, type[_Summary]] = {
    SummaryKind.PATTERN: PatternSummary,
    SummaryKind.PORTFOLIO: PortfolioSummary,
}
