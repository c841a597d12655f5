from __future__ import annotations

import logging
import re
from typing import Any, Dict, List

from ..core.config import get_settings
from ..core.db import utcnow
from ..schemas.runs import RunInput
from .connectors import ConnectorRunner, get_connectors
from .validation import extract_domain

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_CATEGORY_LENGTH = 80
MAX_COMPETITOR_DOMAINS = 3

_SUBREDDIT_RE = re.compile(r"/r/([^/]+)")


def extract_category(product_description: str) -> str:
    """First sentence of the product description, capped at 80 characters."""
    first = re.split(r"[.!?\n]", product_description.strip(), maxsplit=1)[0].strip()
    return first[:MAX_CATEGORY_LENGTH]


def competitor_domains(run_input: RunInput) -> List[str]:
    domains = []
    for url in run_input.competitor_urls[:MAX_COMPETITOR_DOMAINS]:
        domain = extract_domain(url)
        if domain:
            domains.append(domain)
    return domains


def build_competitor_query(run_input: RunInput) -> str:
    domains = competitor_domains(run_input)
    if domains:
        return f"{' OR '.join(domains)} growth strategy marketing tactics"
    return f"{extract_category(run_input.product_description)} competitors analysis growth strategy"


def build_research_plan(run_input: RunInput) -> List[Dict[str, Any]]:
    """The four concurrent searches behind every strategy run."""
    category = extract_category(run_input.product_description)
    return [
        {
            "name": "competitors",
            "connector": "tavily",
            "params": {"query": build_competitor_query(run_input)},
        },
        {
            "name": "market_trends",
            "connector": "tavily",
            "params": {"query": f"{category} market trends {utcnow().year}"},
        },
        {
            "name": "growth_tactics",
            "connector": "tavily",
            "params": {"query": f"growth tactics for {category} startups"},
        },
        {
            "name": "reddit",
            "connector": "tavily",
            "params": {
                "query": (
                    f"site:reddit.com {category} problems OR complaints "
                    "OR help OR recommendations"
                ),
                "max_results": settings.REDDIT_MAX_RESULTS,
            },
        },
    ]


def _reddit_discussions(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    discussions = []
    for r in results:
        match = _SUBREDDIT_RE.search(r.get("url") or "")
        discussions.append(
            {
                "title": r.get("title") or "",
                "url": r.get("url"),
                "content": r.get("content") or "",
                "subreddit": match.group(1) if match else None,
            }
        )
    return discussions


def empty_research(errors: List[str] | None = None) -> Dict[str, Any]:
    return {
        "competitor_insights": [],
        "market_trends": [],
        "growth_tactics": [],
        "reddit_discussions": [],
        "research_completed_at": utcnow().isoformat(),
        "errors": list(errors or []),
    }


def run_research(
    run_input: RunInput,
    runner: ConnectorRunner | None = None,
) -> Dict[str, Any]:
    """
    Gather market context for a strategy run.

    Individual search failures are recorded in `errors`; the rest of the
    research still returns.
    """
    runner = runner or get_connectors()
    results, errors = runner.execute_plan(build_research_plan(run_input))

    research = empty_research(errors)
    research["competitor_insights"] = results.get("competitors", {}).get("results") or []
    research["market_trends"] = results.get("market_trends", {}).get("results") or []
    research["growth_tactics"] = results.get("growth_tactics", {}).get("results") or []
    research["reddit_discussions"] = _reddit_discussions(
        results.get("reddit", {}).get("results") or []
    )

    logger.info(
        "Research complete",
        extra={"step": "research", "errors": len(errors)},
    )
    return research


def format_research_for_prompt(research: Dict[str, Any] | None) -> str:
    if not research:
        return "No external research is available for this run."

    sections = [
        ("Competitor Intelligence", research.get("competitor_insights")),
        ("Market Trends", research.get("market_trends")),
        ("Growth Tactics In This Space", research.get("growth_tactics")),
    ]
    lines: List[str] = []
    for heading, items in sections:
        if not items:
            continue
        lines.append(f"### {heading}")
        for r in items:
            lines.append(f"- **{r.get('title')}** ({r.get('url')}): {(r.get('content') or '')[:500]}")
        lines.append("")

    reddit = research.get("reddit_discussions") or []
    if reddit:
        lines.append("### Community Discussions (Reddit)")
        for r in reddit:
            sub = f"r/{r['subreddit']} " if r.get("subreddit") else ""
            lines.append(f"- {sub}**{r.get('title')}**: {(r.get('content') or '')[:300]}")
        lines.append("")

    return "\n".join(lines).strip() or "No external research is available for this run."
