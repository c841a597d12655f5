from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ProductDelta(BaseModel):
    description: str | None = None
    website_url: str | None = None
    competitors: list[str] | None = None


class ContextDelta(BaseModel):
    """Conversational update to a business context ("what's changed?")."""

    product: ProductDelta | None = None
    traction_delta: str | None = Field(default=None, max_length=2000)
    tactics_update: str | None = Field(default=None, max_length=4000)
    new_tactics: list[str] | None = None
    working_update: str | None = Field(default=None, max_length=2000)
    not_working_update: str | None = Field(default=None, max_length=2000)
    constraints: str | None = Field(default=None, max_length=1000)
    increment_runs: bool = False


class ContextDeltaRequest(BaseModel):
    business_id: UUID | None = None
    delta: ContextDelta


class ContextSummary(BaseModel):
    product_name: str
    last_traction: str | None = None
    total_runs: int = 0
    last_run_date: str | None = None


class UserContextOut(BaseModel):
    business_id: UUID | None = None
    context: dict[str, Any]
    last_updated: str | None = None
    summary: ContextSummary
    suggested_questions: list[str]


class CreditsOut(BaseModel):
    credits: int
    logged_in: bool = False
