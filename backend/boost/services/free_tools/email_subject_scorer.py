from __future__ import annotations

from typing import Any, Dict

from ...schemas.free_tools import EmailSubjectAnalysisOutput, EmailSubjectScorerRequest
from . import FreeTool, register_tool

SYSTEM_PROMPT = """You are an email subject line analyst. Given a subject line and optional context about the email and audience, evaluate how effective it is at getting opens.

## Scoring Categories (0-100 each)

**Clarity**: is it immediately clear what the email is about?
**Urgency**: does it create a reason to open now (deadline, scarcity, timeliness)?
**Curiosity**: does it open an information gap without giving everything away?
**Relevance**: does it speak to the recipient's interests and needs?

90-100 is exceptional, 70-89 good, 50-69 generic, 0-49 easy to ignore.

## Rules
- Be honest. Most subject lines score 30-55.
- Every score needs specific evidence from the subject line itself.
- NEVER use emojis.
- Rewrites must use the context to be specific. Without context, rewrites show the STRUCTURE of a good subject line and note which specifics are missing.
- Keep rewrites under 60 characters when possible (mobile preview cutoff).

## Output Format
Return ONLY valid JSON:
{
  "overall": <weighted average: clarity 25%, urgency 25%, curiosity 30%, relevance 20%>,
  "scores": {"clarity": <0-100>, "urgency": <0-100>, "curiosity": <0-100>, "relevance": <0-100>},
  "verdict": "<1 sentence: the single biggest problem with this subject line>",
  "analysis": {"clarity": "...", "urgency": "...", "curiosity": "...", "relevance": "..."},
  "rewrites": [
    {"subject": "<rewritten subject line>", "why": "<what this fixes>"},
    {"subject": "<rewritten subject line>", "why": "<what this fixes>"},
    {"subject": "<rewritten subject line>", "why": "<what this fixes>"}
  ]
}"""


def build_user_message(data: Dict[str, Any], research: str | None = None) -> str:
    message = f'Subject line to analyze: "{data["subject_line"]}"'
    if data.get("email_about"):
        message += f"\nWhat the email is about: {data['email_about']}"
    if data.get("audience"):
        message += f"\nAudience: {data['audience']}"
    return message


TOOL = register_tool(
    FreeTool(
        tool_type="email-subject-scorer",
        request_model=EmailSubjectScorerRequest,
        output_model=EmailSubjectAnalysisOutput,
        system_prompt=SYSTEM_PROMPT,
        build_user_message=build_user_message,
        duplicate_message="You've already scored a subject line.",
    )
)
