"""
Single-call lead-generation tools.

Each tool is one OpenAI JSON-mode call over a small form, optionally
preceded by a web search. Results are stored once per normalized email and
served publicly by slug.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...core.config import get_settings
from ...core.db import utcnow
from ...models.free_tool_result import FreeToolResult
from ...schemas.free_tools import FreeToolGuardFields
from ..llm import get_openai_client, limit_llm_concurrency
from ..slugs import generate_slug, is_unique_violation
from ..validation import normalize_email

settings = get_settings()
logger = logging.getLogger(__name__)

GUARD_FIELDS = {"email", "turnstile_token", "website"}


class FreeToolOutputError(Exception):
    """The model response was empty, not JSON, or failed schema validation."""


class FreeToolInputError(ValueError):
    """The request cannot be analysed (e.g. nothing found for a URL)."""


class FreeToolDuplicate(Exception):
    """This email already has a result for the tool."""

    def __init__(self, message: str, existing_slug: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.existing_slug = existing_slug


@dataclass(frozen=True)
class FreeTool:
    tool_type: str
    request_model: Type[FreeToolGuardFields]
    output_model: Type[BaseModel]
    system_prompt: str
    build_user_message: Callable[[Dict[str, Any], str | None], str]
    duplicate_message: str
    max_tokens: int = 1500
    # Optional web research; returns prompt context
    research: Callable[[Dict[str, Any]], Awaitable[str]] | None = None


_REGISTRY: Dict[str, FreeTool] = {}


def register_tool(tool: FreeTool) -> FreeTool:
    _REGISTRY[tool.tool_type] = tool
    return tool


def get_tool(tool_type: str) -> FreeTool | None:
    return _REGISTRY.get(tool_type)


def tool_types() -> list[str]:
    return sorted(_REGISTRY)


def tool_input(payload: FreeToolGuardFields) -> Dict[str, Any]:
    """The stored form input: everything except the guard fields, blanks dropped."""
    return payload.model_dump(exclude=GUARD_FIELDS, exclude_none=True)


def _complete_json(tool: FreeTool, user_message: str) -> Dict[str, Any]:
    client = get_openai_client()
    with limit_llm_concurrency():
        completion = client.chat.completions.create(
            model=settings.FREE_TOOL_MODEL,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": tool.system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=0.7,
            max_tokens=tool.max_tokens,
        )

    raw = completion.choices[0].message.content if completion.choices else None
    if not raw:
        raise FreeToolOutputError("Empty response from model")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise FreeToolOutputError("Model returned invalid JSON") from exc

    try:
        return tool.output_model.model_validate(parsed).model_dump(by_alias=True)
    except ValidationError as exc:
        raise FreeToolOutputError("Invalid output structure from model") from exc


async def run_free_tool(tool: FreeTool, payload: FreeToolGuardFields) -> Dict[str, Any]:
    data = tool_input(payload)
    research = await tool.research(data) if tool.research else None
    message = tool.build_user_message(data, research)
    output = await asyncio.to_thread(_complete_json, tool, message)
    logger.info("Free tool completed", extra={"tool": tool.tool_type, "step": "free_tool"})
    return output


def find_existing_result(db: Session, email: str, tool_type: str) -> FreeToolResult | None:
    return (
        db.query(FreeToolResult)
        .filter(FreeToolResult.email == email, FreeToolResult.tool_type == tool_type)
        .first()
    )


async def create_free_tool_result(
    db: Session,
    tool: FreeTool,
    payload: FreeToolGuardFields,
) -> FreeToolResult:
    """
    Run a tool for one email and store the result.

    Raises FreeToolDuplicate when the email already used this tool (checked
    before the model call, and again by the unique index on insert).
    """
    email = normalize_email(payload.email)
    existing = find_existing_result(db, email, tool.tool_type)
    if existing:
        raise FreeToolDuplicate(tool.duplicate_message, existing_slug=existing.slug)

    output = await run_free_tool(tool, payload)

    now = utcnow()
    result = FreeToolResult(
        slug=generate_slug(),
        email=email,
        tool_type=tool.tool_type,
        input=tool_input(payload),
        output=output,
        status="complete",
        completed_at=now,
    )
    db.add(result)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_unique_violation(exc):
            raise FreeToolDuplicate(tool.duplicate_message) from exc
        raise
    db.refresh(result)
    return result


def get_free_tool_result(db: Session, tool_type: str, slug: str) -> FreeToolResult | None:
    return (
        db.query(FreeToolResult)
        .filter(FreeToolResult.tool_type == tool_type, FreeToolResult.slug == slug)
        .first()
    )


# Importing the tool modules registers them
from . import (  # noqa: E402,F401
    competitor_finder,
    email_subject_scorer,
    headline_analyzer,
    marketing_audit,
    target_audience,
)
