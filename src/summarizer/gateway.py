"""Summarizer gateway — the boundary to the external LLM.

Follows the same ``call_claude`` → ``strip_json_fences`` → validate
pattern as the other synthesizers.  Anything short of a complete,
schema-valid response is a ``SummarizationFailed``.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from pydantic import ValidationError

from worklog.errors import SummarizationFailed
from worklog.summarizer.models import SCHEMAS, Summary, SummaryItem, SummaryKind
from worklog.summarizer.prompts import get_system_prompt, render_items

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    """Anything that turns dated items into a structured summary."""

    def summarize(
        self, kind: SummaryKind, items: list[SummaryItem], *, context: str = ""
    ) -> Summary: ...


def parse_summary(kind: SummaryKind, raw: str) -> Summary:
    """Parse raw LLM output into the schema for *kind*.

    Raises:
        SummarizationFailed: If no JSON object is found or it does not
            validate against the schema.
    """
    from worklog.llm import strip_json_fences

    cleaned = strip_json_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SummarizationFailed(f"response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SummarizationFailed(f"expected a JSON object, got {type(data).__name__}")
    try:
        return SCHEMAS[SummaryKind(kind)].model_validate(data)
    except ValidationError as exc:
        raise SummarizationFailed(
            f"response does not match the {kind} schema: {exc.error_count()} error(s)"
        ) from exc


class ClaudeSummarizer:
    """Summarizes work entries via Claude."""

    def __init__(
        self, *, model: str | None = None, timeout: int = 120, max_tokens: int = 2048
    ) -> None:
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens

    def summarize(
        self, kind: SummaryKind, items: list[SummaryItem], *, context: str = ""
    ) -> Summary:
        """Summarize *items* into the schema for *kind*.

        Raises:
            SummarizationFailed: If the call fails or the output is off-schema.
        """
        from worklog.llm import LLMError, call_claude

        if not items:
            raise SummarizationFailed("no items to summarize")

        try:
            raw = call_claude(
                get_system_prompt(kind),
                render_items(items, context),
                model=self._model,
                timeout=self._timeout,
                max_tokens=self._max_tokens,
                label=f"{kind} x{len(items)}",
            )
        except LLMError as exc:
            raise SummarizationFailed(str(exc)) from exc

        summary = parse_summary(kind, raw)
        logger.debug("Parsed %s summary from %d items", kind, len(items))
        return summary
