"""
The 3-Second Test: scrape a homepage and diagnose what costs it customers.

Scraping is best effort. When Tavily is down or the page is empty the model
is told so and works from the URL and description alone.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from ...schemas.free_tools import MarketingAuditOutput, MarketingAuditRequest
from ..connectors.tavily import TavilyConnector
from ..validation import is_public_host
from . import FreeTool, FreeToolInputError, register_tool

logger = logging.getLogger(__name__)

MAX_SITE_CHARS = 5000

SYSTEM_PROMPT = """You are a marketing consultant running The 3-Second Test on small business websites.

The test: when a stranger lands on the site, can they answer three questions in 3 seconds?
1. What does this business sell?
2. Who is it for?
3. Why pick them over an alternative?

Most small business sites fail all three. Diagnose exactly where and why, using specific observations from the site content.

You will receive scraped content from the website and a one-liner about what the business does.

## Diagnostic Lenses

**clarity**: is there a clear differentiator in the headline or first visible section, or do they sound like every competitor?
**customer-focus**: does the copy talk about the company ("We are...", "Our team...") or the customer's problem ("You need...")? More "we" than "you" is a red flag.
**proof**: does the site show what customers become after buying? Specific results, before/after stories and outcome testimonials count. Bare numbers like "500+ clients" do not.
**friction**: is there one obvious call to action, or several competing ones? More than 2 asks on the homepage is confusion.

## Voice
Direct and specific. Quote actual copy from the site. Diagnose, don't hedge. NEVER use emojis.

## Output Rules
- silentKiller: the single biggest thing costing them customers, in one plain sentence that references their content.
- summary: 2-3 sentences on the overall pattern, naming what works and what doesn't.
- findings: exactly 3-4 findings spread across different lenses. Each quotes specific content, explains why it hurts a first-time visitor and gives one fix they can make today.

Return ONLY valid JSON:
{
  "silentKiller": "...",
  "summary": "...",
  "findings": [
    {"category": "clarity" | "customer-focus" | "proof" | "friction", "title": "...", "detail": "...", "recommendation": "..."}
  ]
}"""

NO_CONTENT_NOTE = (
    "Note: Could not scrape website content. Analyze based on the URL and "
    "business description only, and note that you couldn't access the site."
)


async def scrape_site(
    data: Dict[str, Any],
    connector: TavilyConnector | None = None,
) -> str:
    """Homepage text for the prompt, or "" when it could not be fetched."""
    url = data["url"]
    if not is_public_host(url):
        raise FreeToolInputError("Please enter a public website URL")

    connector = connector or TavilyConnector()
    try:
        content = await connector.extract(url, max_chars=MAX_SITE_CHARS)
    except Exception as exc:
        logger.warning(
            "Site extract failed for %s: %s",
            url,
            exc,
            extra={"tool": "marketing-audit", "step": "extract"},
        )
        return ""
    return content or ""


def build_user_message(data: Dict[str, Any], research: str | None = None) -> str:
    body = f"--- Scraped website content ---\n{research}" if research else NO_CONTENT_NOTE
    return (
        f"Website URL: {data['url']}\n"
        f"Business description: {data['business_description']}\n\n"
        f"{body}"
    )


TOOL = register_tool(
    FreeTool(
        tool_type="marketing-audit",
        request_model=MarketingAuditRequest,
        output_model=MarketingAuditOutput,
        system_prompt=SYSTEM_PROMPT,
        build_user_message=build_user_message,
        duplicate_message="You've already received a marketing audit.",
        research=scrape_site,
    )
)
