from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict

from pydantic import ValidationError

from ..core.config import get_settings
from ..core.db import utcnow
from ..schemas.structured_output import (
    FORMATTER_VERSION,
    PartialStructuredOutput,
    StructuredOutput,
)
from .llm import anthropic_text, get_anthropic_client, limit_llm_concurrency
from .markdown_parser import (
    find_section,
    parse_competitors_table,
    parse_day_table,
    parse_metrics_table,
    parse_roadmap,
    parse_start_doing,
    parse_strategy_sections,
    parse_week_sections,
    total_hours,
)

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_TOP_PRIORITIES = 8

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

FORMATTER_SYSTEM_PROMPT = """You are a precise data extractor. Parse a markdown growth-strategy document and return structured JSON.

RULES:
1. Extract ONLY data explicitly present in the markdown. Never invent anything.
2. Missing or empty sections become empty arrays.
3. Parse traffic like "50K" as 50000 and "1.2M" as 1200000.
4. Return ONLY valid JSON: no markdown, no explanation, no code fences.
5. Extract ALL weeks of the 30-Day Roadmap, ALL days of the Week 1 table and ALL Start Doing items.
6. "traffic" holds only numeric monthly visits such as "50K/mo"; use "" when unknown and omit trafficNumber.
   Qualitative information belongs in "positioning".

OUTPUT FORMAT:
{
  "thisWeek": {"days": [{"day": 1, "action": "...", "timeEstimate": "2 hrs", "successMetric": "..."}], "totalHours": 10},
  "topPriorities": [{"rank": 1, "title": "...", "iceScore": 26,
                     "impact": {"score": 9, "reason": "..."},
                     "confidence": {"score": 8, "reason": "..."},
                     "ease": {"score": 9, "reason": "..."},
                     "description": "..."}],
  "metrics": [{"name": "...", "target": "...", "category": "acquisition"}],
  "competitors": [{"name": "...", "traffic": "50K/mo", "trafficNumber": 50000, "positioning": "..."}],
  "currentWeek": 1,
  "roadmapWeeks": [{"week": 1, "theme": "...", "tasks": ["..."]}],
  "weeks": [{"week": 1, "theme": "...", "days": [{"day": 1, "action": "...", "timeEstimate": "...", "successMetric": "..."}]}]
}"""


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text.strip()).strip()


def _stamp(data: Dict[str, Any]) -> Dict[str, Any]:
    return {**data, "extractedAt": utcnow().isoformat(), "formatterVersion": FORMATTER_VERSION}


def validate_structured_output(data: Dict[str, Any]) -> Dict[str, Any] | None:
    """Full schema first, then the partial schema filled with defaults."""
    try:
        return StructuredOutput.model_validate(data).to_json()
    except ValidationError as exc:
        logger.warning(
            "Structured output failed full validation: %s",
            exc.error_count(),
            extra={"step": "formatter"},
        )

    try:
        return PartialStructuredOutput.model_validate(data).normalize().to_json()
    except ValidationError:
        logger.warning("Structured output failed partial validation", extra={"step": "formatter"})
        return None


def _request_extraction(markdown: str) -> str:
    client = get_anthropic_client()
    with limit_llm_concurrency():
        response = client.with_options(timeout=settings.FORMATTER_TIMEOUT_SECONDS).messages.create(
            model=settings.FORMATTER_MODEL,
            max_tokens=settings.FORMATTER_MAX_TOKENS,
            system=FORMATTER_SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": f"Extract the structured data from this strategy:\n\n{markdown}",
                }
            ],
        )
    return anthropic_text(response)


def extract_structured_output(
    markdown: str,
    research: Dict[str, Any] | None = None,
) -> Dict[str, Any] | None:
    """
    Dashboard JSON for a strategy.

    Order of attempts: LLM extraction validated against the full schema,
    the same response against the partial schema, then regex parsing of the
    markdown. Returns None only when every attempt fails.
    """
    if not settings.ANTHROPIC_API_KEY:
        logger.info("No formatter key configured; using regex extraction", extra={"step": "formatter"})
        return extract_structured_output_fallback(markdown)

    try:
        raw = _request_extraction(markdown)
    except Exception:
        logger.exception("Formatter call failed", extra={"step": "formatter"})
        return extract_structured_output_fallback(markdown)

    if not raw:
        logger.warning("Formatter returned an empty response", extra={"step": "formatter"})
        return extract_structured_output_fallback(markdown)

    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError:
        logger.warning("Formatter returned invalid JSON", extra={"step": "formatter"})
        return extract_structured_output_fallback(markdown)
    if not isinstance(data, dict):
        return extract_structured_output_fallback(markdown)

    validated = validate_structured_output(_stamp(data))
    if validated is None:
        return extract_structured_output_fallback(markdown)
    return validated


def extract_structured_output_fallback(markdown: str) -> Dict[str, Any] | None:
    """Build the dashboard JSON from the markdown layout alone."""
    sections = parse_strategy_sections(markdown)

    weeks = parse_week_sections(sections)
    week_one = next((w for w in weeks if w["week"] == 1), None)
    days = week_one["days"] if week_one else []
    if not days:
        this_week = find_section(sections, "This Week")
        days = parse_day_table(this_week) if this_week else []

    hours = total_hours(days)

    start_doing = find_section(sections, "Start Doing")
    priorities = parse_start_doing(start_doing)[:MAX_TOP_PRIORITIES] if start_doing else []
    top_priorities = [{"rank": i, **item} for i, item in enumerate(priorities, start=1)]

    metrics_section = find_section(sections, "Metrics Dashboard")
    competitors_section = find_section(sections, "Competitive Landscape")
    roadmap_section = find_section(sections, "30-Day Roadmap")

    output: Dict[str, Any] = {
        "thisWeek": {"days": days, **({"totalHours": hours} if hours else {})},
        "topPriorities": top_priorities,
        "metrics": parse_metrics_table(metrics_section) if metrics_section else [],
        "competitors": parse_competitors_table(competitors_section) if competitors_section else [],
        "currentWeek": 1,
        "roadmapWeeks": parse_roadmap(roadmap_section) if roadmap_section else [],
    }
    if weeks:
        output["weeks"] = weeks

    try:
        result = StructuredOutput.model_validate(_stamp(output)).to_json()
    except ValidationError as exc:
        logger.warning(
            "Fallback extraction failed validation: %s",
            exc.error_count(),
            extra={"step": "formatter_fallback"},
        )
        return None

    logger.info("Fallback extraction succeeded", extra={"step": "formatter_fallback"})
    return result
