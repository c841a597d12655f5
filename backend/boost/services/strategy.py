from __future__ import annotations

import logging
import textwrap
from typing import Any, Dict

from ..core.config import get_settings
from ..schemas.runs import RunInput
from .llm import anthropic_text, get_anthropic_client, limit_llm_concurrency
from .research import format_research_for_prompt

settings = get_settings()
logger = logging.getLogger(__name__)


class StrategyGenerationError(Exception):
    """The model returned nothing usable for a strategy."""


# -----------------------------------------------------------------------------
# Prompt building blocks
# -----------------------------------------------------------------------------

BASE_PROMPT = textwrap.dedent(
    """\
    You are an elite growth strategist who has helped scale dozens of small
    businesses. Every recommendation you make is specific to the product,
    market and constraints in front of you, prioritised with ICE
    (Impact, Confidence, Ease; each 1-10, ICE Score = sum, max 30), actionable
    this week, and grounded in the research provided.

    Frameworks you apply:
    - Positioning first: competitive alternatives (including doing nothing),
      unique attributes, value, target segment, market category. Flag unclear
      positioning before recommending tactics.
    - AARRR pirate metrics: find the bottleneck stage and focus there.
    - Brand and community compound; rented audiences do not.

    Be direct and honest. No filler. Explain why something works, not only
    what to do. Never use emojis."""
)

RETURNING_USER_PROMPT = textwrap.dedent(
    """\

    ## For This Returning User
    Their history is included below. Acknowledge progress, build on past
    advice instead of repeating it, note which earlier recommendations worked,
    and dig into challenges that keep recurring."""
)

FOCUS_AREA_PROMPTS: Dict[str, str] = {
    "acquisition": (
        "## Your Focus: ACQUISITION\n"
        "Find the lowest-CAC path to their next 1,000 users: where the audience "
        "already gathers, which channels fit the product, and how to stand out there."
    ),
    "activation": (
        "## Your Focus: ACTIVATION\n"
        "Users sign up but never reach the aha moment. Define that moment, shorten "
        "time-to-value and remove onboarding friction."
    ),
    "retention": (
        "## Your Focus: RETENTION\n"
        "Users leave after a few weeks. Find why, build habit loops and re-engagement "
        "triggers, and measure cohort retention."
    ),
    "referral": (
        "## Your Focus: REFERRAL\n"
        "Turn happy users into a growth channel: shareable moments, incentives that fit "
        "the product, and viral loops."
    ),
    "monetization": (
        "## Your Focus: MONETIZATION\n"
        "They have users but not enough revenue. Examine pricing, packaging, "
        "willingness to pay and the upgrade path."
    ),
    "custom": "## Your Focus: {custom}\nAddress this specific challenge directly.",
}

OUTPUT_FORMAT_PROMPT = textwrap.dedent(
    """\
    ## Output Format Requirements
    Write markdown with exactly these sections, in this order:

    ## Executive Summary
    ## Your Situation
    ## Competitive Landscape
    A table: | Competitor | Their Approach | Your Advantage |
    Include monthly traffic (e.g. 50K/mo) in "Their Approach" when the research shows it.
    ## Stop Doing
    ## Start Doing (Prioritized by ICE)
    5-8 items, highest ICE first, each as:
    ### [Recommendation Title]
    - **Impact**: X/10 - reason
    - **Confidence**: X/10 - reason
    - **Ease**: X/10 - reason
    - **ICE Score**: XX

    [implementation guidance]
    ## Week 1: [Theme]
    | Day | Action | Time | Success Metric |
    One row per day, days 1-7. Repeat as ## Week 2 (days 8-14), ## Week 3
    (days 15-21) and ## Week 4 (days 22-28).
    ## 30-Day Roadmap
    ### Week N: [Theme] followed by "- [ ] task" checklist lines, for weeks 1-4.
    ## Metrics Dashboard
    | Stage | Metric | Target | How to Measure | with one row per AARRR stage.

    Be extremely specific: not "improve onboarding" but "add a welcome email one
    hour after signup"."""
)

REFINEMENT_PROMPT = textwrap.dedent(
    """\

    ## Refinement Mode
    The user has read their strategy and added context. Keep everything in the
    previous strategy that still applies, change what their feedback
    addresses, and keep the same section layout so the dashboard still works."""
)


def _focus_prompt(run_input: RunInput) -> str:
    if run_input.focus_area == "custom":
        return FOCUS_AREA_PROMPTS["custom"].format(
            custom=(run_input.custom_focus_area or "CUSTOM CHALLENGE").upper()
        )
    return FOCUS_AREA_PROMPTS[run_input.focus_area]


def _focus_label(run_input: RunInput) -> str:
    if run_input.focus_area == "custom" and run_input.custom_focus_area:
        return f"Custom: {run_input.custom_focus_area}"
    return run_input.focus_area.capitalize()


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def build_system_prompt(run_input: RunInput, returning: bool, refinement: bool = False) -> str:
    parts = [BASE_PROMPT]
    if refinement:
        parts.append(REFINEMENT_PROMPT)
    if returning:
        parts.append(RETURNING_USER_PROMPT)
    parts.append(_focus_prompt(run_input))
    parts.append(OUTPUT_FORMAT_PROMPT)
    return "\n\n".join(parts)


def build_input_block(run_input: RunInput) -> str:
    tactics = run_input.tactics_and_results or "\n\n".join(
        p for p in (run_input.what_you_tried, run_input.whats_working) if p
    )
    lines = [
        "## Focus Area",
        f"**{_focus_label(run_input)}**",
        "",
        "## About My Product",
        run_input.product_description,
        "",
        "## Current Traction",
        run_input.current_traction,
    ]
    if tactics:
        lines += ["", "## What I've Tried & How It's Going", tactics]
    if run_input.website_url:
        lines += ["", "## My Website", run_input.website_url]
    if run_input.competitor_urls:
        lines += ["", "## Competitors", *[f"- {u}" for u in run_input.competitor_urls]]
    if run_input.analytics_summary:
        lines += ["", "## Analytics Summary", run_input.analytics_summary]
    if run_input.constraints:
        lines += ["", "## Constraints", run_input.constraints]
    return "\n".join(lines)


def build_history_block(history: Dict[str, Any] | None) -> str:
    if not history or not history.get("total_runs"):
        return ""
    lines = [
        "---",
        "# Your History With This User",
        f"*This is their strategy #{history['total_runs'] + 1}*",
    ]
    if history.get("traction_history"):
        lines += ["", "## Traction Timeline"]
        lines += [
            f"- **{s.get('date')}**: {_truncate(s.get('summary') or '', 500)}"
            for s in history["traction_history"]
        ]
    if history.get("tactics_tried"):
        lines += ["", "## Tactics They've Tried Before"]
        lines += [f"- {_truncate(t, 400)}" for t in history["tactics_tried"]]
    if history.get("constraints"):
        lines += ["", "## Known Constraints", history["constraints"]]
    lines.append("---")
    return "\n".join(lines)


class StrategyWriter:
    """Writes and refines strategy markdown with the strategy model."""

    def __init__(self, client=None) -> None:
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = get_anthropic_client()
        return self._client

    def _complete(self, system: str, message: str, max_tokens: int | None = None) -> str:
        client = self._get_client()
        with limit_llm_concurrency():
            response = client.messages.create(
                model=settings.STRATEGY_MODEL,
                max_tokens=max_tokens or settings.STRATEGY_MAX_TOKENS,
                system=system,
                messages=[{"role": "user", "content": message}],
            )
        text = anthropic_text(response)
        if not text:
            raise StrategyGenerationError("No text content in model response")
        return text

    def generate(
        self,
        run_input: RunInput,
        research: Dict[str, Any] | None,
        history: Dict[str, Any] | None = None,
        prior_context: str | None = None,
    ) -> str:
        """
        `prior_context` is earlier output the user already has, e.g. the free
        audit they upgraded from; the new strategy should build on it.
        """
        prior = (
            "## Prior Analysis (build on this, do not repeat it)\n" + prior_context
            if prior_context
            else ""
        )
        message = "\n\n".join(
            part
            for part in (
                "# Growth Strategy Request",
                build_input_block(run_input),
                build_history_block(history),
                prior,
                "# Research\n" + format_research_for_prompt(research),
            )
            if part
        )
        system = build_system_prompt(run_input, returning=bool(history))
        return self._complete(system, message)

    def refine(
        self,
        run_input: RunInput,
        previous_output: str,
        additional_context: str,
        history: Dict[str, Any] | None = None,
    ) -> str:
        message = "\n\n".join(
            part
            for part in (
                "# Strategy Refinement Request",
                "## User's Feedback & Additional Context\n" + additional_context,
                "---",
                "## Previous Strategy (build upon this)\n" + previous_output,
                "---",
                "# Original Request Context",
                build_input_block(run_input),
                build_history_block(history),
            )
            if part
        )
        system = build_system_prompt(run_input, returning=bool(history), refinement=True)
        return self._complete(system, message)

    def positioning_brief(self, run_input: RunInput, page_content: str | None, research: Dict[str, Any] | None) -> str:
        """Shorter free-audit write-up: positioning check plus first-week actions."""
        system = "\n\n".join(
            [
                BASE_PROMPT,
                _focus_prompt(run_input),
                textwrap.dedent(
                    """\
                    Write a concise free audit in markdown with these sections:
                    ## Executive Summary
                    ## Positioning Check
                    ## Competitive Landscape
                    (table: | Competitor | Their Approach | Your Advantage |)
                    ## Start Doing (Prioritized by ICE)
                    (3 items in the ### / **Impact** / **ICE Score** format)
                    ## Week 1: [Theme]
                    (table: | Day | Action | Time | Success Metric |, days 1-7)"""
                ),
            ]
        )
        parts = ["# Free Audit Request", build_input_block(run_input)]
        if page_content:
            parts.append("## Homepage Content\n" + page_content)
        parts.append("# Research\n" + format_research_for_prompt(research))
        return self._complete(system, "\n\n".join(parts), max_tokens=6000)
