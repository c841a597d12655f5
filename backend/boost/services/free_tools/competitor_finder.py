from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from ...schemas.free_tools import CompetitorFinderOutput, CompetitorFinderRequest
from ..connectors.tavily import TavilyConnector
from ..validation import extract_domain
from . import FreeTool, FreeToolInputError, register_tool

logger = logging.getLogger(__name__)

SEARCH_RESULTS = 8
SNIPPET_CHARS = 300
NO_RESULTS_MESSAGE = "No search results found. Please check the URL and try again."

SYSTEM_PROMPT = """You are a competitive intelligence analyst. Given search results about a business and its market, identify the top 5 real competitors and provide strategic intel on each.

## Rules
- Identify 5 REAL competitors: actual companies with real URLs. Never invent companies.
- Each competitor must be a direct or close alternative to the user's business.
- Be honest and specific. Don't flatter the user or invent weaknesses.
- If search results are thin, fewer competitors with real intel beats 5 with made-up details.
- NEVER use emojis.
- URLs must be real domains found in the search results; when unsure, use the company's main domain.

## For Each Competitor
- name: company or product name
- url: their website URL
- description: 1 sentence on what they do
- positioning: 1-2 sentences on how they position themselves and who they target
- weakness: 1 sentence on a genuine gap or complaint users have
- opportunity: 1 sentence on how the user could exploit it

## Summary
2-3 sentences on where the user's business stands and the single biggest opportunity.

## Output Format
Return ONLY valid JSON:
{
  "competitors": [
    {"name": "...", "url": "https://...", "description": "...", "positioning": "...", "weakness": "...", "opportunity": "..."}
  ],
  "summary": "..."
}"""


def _format_results(heading: str, results: List[Dict[str, Any]]) -> str:
    lines = [f"## Search: {heading}"]
    for r in results:
        lines.append(f"- {r.get('title')}: {(r.get('content') or '')[:SNIPPET_CHARS]} ({r.get('url')})")
    return "\n".join(lines)


async def research_competitors(
    data: Dict[str, Any],
    connector: TavilyConnector | None = None,
) -> str:
    """
    Two searches in parallel: competitors of the domain, and alternatives
    for the description. Either may fail; both failing or coming back empty
    is an input error.
    """
    connector = connector or TavilyConnector()
    domain = extract_domain(data["url"]) or data["url"]
    outcomes = await asyncio.gather(
        connector.search(f"{domain} competitors alternatives", max_results=SEARCH_RESULTS),
        connector.search(
            f"{data['description']} software tools alternatives",
            max_results=SEARCH_RESULTS,
        ),
        return_exceptions=True,
    )

    blocks = []
    for heading, outcome in zip(("Direct Competitors", "Industry Alternatives"), outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(
                "Competitor search failed: %s",
                outcome,
                extra={"tool": "competitor-finder", "step": "search"},
            )
            continue
        if outcome:
            blocks.append(_format_results(heading, outcome))

    if not blocks:
        raise FreeToolInputError(NO_RESULTS_MESSAGE)
    return "\n\n".join(blocks)


def build_user_message(data: Dict[str, Any], research: str | None = None) -> str:
    return (
        f"Business URL: {data['url']}\n"
        f"Business description: {data['description']}\n\n"
        f"{research or ''}\n\n"
        "Based on these search results, identify the top 5 competitors and analyze each one."
    )


TOOL = register_tool(
    FreeTool(
        tool_type="competitor-finder",
        request_model=CompetitorFinderRequest,
        output_model=CompetitorFinderOutput,
        system_prompt=SYSTEM_PROMPT,
        build_user_message=build_user_message,
        duplicate_message="You've already run the competitor finder.",
        max_tokens=2500,
        research=research_competitors,
    )
)
