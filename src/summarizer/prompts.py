"""LLM prompts for the summarizer gateway."""

from __future__ import annotations

from worklog.summarizer.models import SummaryItem, SummaryKind

_PATTERN_SYSTEM = """You analyze a person's daily work log. Given five days of entries, \
describe how they work.

Return ONLY a JSON object with exactly these keys:
{
  "pattern": "One sentence naming the recurring work pattern",
  "workflow": "How the work flowed across the days (2-3 sentences)",
  "keywords": ["3-5", "short", "keywords"],
  "insight": "One actionable observation"
}"""

_PORTFOLIO_SYSTEM = """You turn a person's daily work log into a portfolio card. Given \
about twenty days of entries, summarize them as one project.

Return ONLY a JSON object with exactly these keys:
{
  "title": "Project title (under 40 characters)",
  "tasks": ["Concrete tasks performed"],
  "results": ["Outcomes or deliverables, may be empty"],
  "thinking_summary": "How the person approached the work (2-3 sentences)",
  "keywords": ["3-5", "short", "keywords"]
}"""

_SYSTEM_PROMPTS: dict[SummaryKind, str] = {
    SummaryKind.PATTERN: _PATTERN_SYSTEM,
    SummaryKind.PORTFOLIO: _PORTFOLIO_SYSTEM,
}


def get_system_prompt(kind: SummaryKind) -> str:
    return _SYSTEM_PROMPTS[SummaryKind(kind)]


def render_items(items: list[SummaryItem], context: str = "") -> str:
    """Render dated entries as the user prompt."""
    lines: list[str] = ["## Work Log", ""]
    for item in items:
        lines.append(f"### {item.date.isoformat()}")
        for content in item.contents:
            lines.append(f"- {content}")
        lines.append("")
    if context:
        lines.extend(["## Earlier Analyses", "", context, ""])
    return "\n".join(lines).rstrip() + "\n"
