from __future__ import annotations

from typing import Any, Dict

from ...schemas.free_tools import HeadlineAnalysisOutput, HeadlineAnalyzerRequest
from . import FreeTool, register_tool

SYSTEM_PROMPT = """You are a headline and value proposition analyst. Given a headline or tagline and optional business context, evaluate how clear, specific, differentiated and customer-focused it is.

## Scoring Categories (0-100 each)

**Clarity**: can a stranger immediately understand what this business does?
- 90-100: crystal clear in under 3 seconds
- 70-89: clear with minor ambiguity
- 50-69: takes effort to understand
- 0-49: confusing or meaningless to outsiders

**Specificity**: concrete details or just buzzwords?
- 90-100: specific numbers, outcomes or details
- 50-69: generic language mixed with some specifics
- 0-49: pure buzzwords ("innovative solutions", "world-class")

**Differentiation**: could a competitor use this exact headline?
- 90-100: unique to this business
- 0-49: interchangeable with any competitor

**Customer Focus**: does it speak to a specific person's problem or desire?
- 90-100: clearly addresses a specific audience's need
- 50-69: product-focused rather than customer-focused
- 0-49: no clear audience or benefit

## Rules
- Be honest. Most headlines score 30-55.
- Every score needs specific evidence from the headline itself.
- NEVER use emojis.
- Rewrites must use the business context to be specific. Without context, rewrites show the STRUCTURE of a good headline and note which specifics are missing.

## Output Format
Return ONLY valid JSON:
{
  "overall": <weighted average: clarity 35%, specificity 25%, differentiation 20%, customerFocus 20%>,
  "scores": {"clarity": <0-100>, "specificity": <0-100>, "differentiation": <0-100>, "customerFocus": <0-100>},
  "verdict": "<1 sentence: the single biggest problem with this headline>",
  "analysis": {"clarity": "...", "specificity": "...", "differentiation": "...", "customerFocus": "..."},
  "rewrites": [
    {"headline": "<rewritten headline>", "why": "<what this fixes>"},
    {"headline": "<rewritten headline>", "why": "<what this fixes>"},
    {"headline": "<rewritten headline>", "why": "<what this fixes>"}
  ]
}"""


def build_user_message(data: Dict[str, Any], research: str | None = None) -> str:
    message = f'Headline to analyze: "{data["headline"]}"'
    if data.get("what_they_sell"):
        message += f"\nWhat the business sells: {data['what_they_sell']}"
    if data.get("who_its_for"):
        message += f"\nWho it's for: {data['who_its_for']}"
    return message


TOOL = register_tool(
    FreeTool(
        tool_type="headline-analyzer",
        request_model=HeadlineAnalyzerRequest,
        output_model=HeadlineAnalysisOutput,
        system_prompt=SYSTEM_PROMPT,
        build_user_message=build_user_message,
        duplicate_message="You've already analyzed a headline.",
    )
)
