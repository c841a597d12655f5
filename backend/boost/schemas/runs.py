from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.run import RunSource, RunStatus

FocusArea = Literal["acquisition", "activation", "retention", "referral", "monetization", "custom"]

MAX_TOTAL_CHARS = 25000
MAX_COMPETITORS = 3


class RunInput(BaseModel):
    """Form submission that drives a strategy run."""

    product_description: str = Field(max_length=5000)
    current_traction: str = Field(max_length=2000)
    tactics_and_results: str = Field(default="", max_length=4000)
    # Older submissions split tactics in two
    what_you_tried: str = Field(default="", max_length=2000)
    whats_working: str = Field(default="", max_length=2000)
    focus_area: FocusArea = "acquisition"
    custom_focus_area: str | None = Field(default=None, max_length=500)
    competitor_urls: list[str] = Field(default_factory=list)
    website_url: str = Field(default="", max_length=2048)
    analytics_summary: str = Field(default="", max_length=2000)
    constraints: str = Field(default="", max_length=1000)

    @field_validator(
        "product_description",
        "current_traction",
        "tactics_and_results",
        "what_you_tried",
        "whats_working",
        "website_url",
        "analytics_summary",
        "constraints",
        mode="before",
    )
    @classmethod
    def _strip(cls, v):
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("product_description")
    @classmethod
    def _product_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Product description is required")
        return v

    @field_validator("current_traction")
    @classmethod
    def _traction_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Current traction is required")
        return v

    @field_validator("competitor_urls", mode="before")
    @classmethod
    def _clean_competitors(cls, v):
        if v is None:
            return []
        if isinstance(v, list):
            cleaned = [str(u).strip() for u in v if u and str(u).strip()]
            if len(cleaned) > MAX_COMPETITORS:
                raise ValueError(f"At most {MAX_COMPETITORS} competitors")
            return cleaned
        return v

    @model_validator(mode="after")
    def _total_length(self):
        total = sum(
            len(s)
            for s in (
                self.product_description,
                self.current_traction,
                self.tactics_and_results,
                self.what_you_tried,
                self.whats_working,
                "".join(self.competitor_urls),
                self.website_url,
                self.analytics_summary,
                self.constraints,
            )
        )
        if total > MAX_TOTAL_CHARS:
            raise ValueError(f"Total content exceeds {MAX_TOTAL_CHARS:,} characters")
        return self


class CreateRunWithCreditsRequest(BaseModel):
    input: RunInput
    business_id: UUID | None = None
    # "What's new since last time" from returning users
    context_delta: str | None = Field(default=None, max_length=2000)


class CreateRunResponse(BaseModel):
    run_id: UUID


class ValidateCodeRequest(BaseModel):
    code: str = ""


class ValidateCodeResponse(BaseModel):
    valid: bool
    credits: int | None = None
    error: str | None = None


class CreateRunWithCodeRequest(BaseModel):
    code: str = ""
    input: RunInput | None = None


class RunStatusOut(BaseModel):
    status: RunStatus
    stage: str | None = None


class RunOut(BaseModel):
    id: UUID
    status: RunStatus
    stage: str | None = None
    source: RunSource
    input: dict[str, Any]
    output: str | None = None
    structured_output: dict[str, Any] | None = None
    parent_run_id: UUID | None = None
    share_slug: str | None = None
    plan_start_date: date | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class RunSummaryOut(BaseModel):
    id: UUID
    status: RunStatus
    source: RunSource
    parent_run_id: UUID | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SharedRunOut(BaseModel):
    """Public view of a shared run: no ownership or billing fields."""

    id: UUID
    output: str | None = None
    structured_output: dict[str, Any] | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ShareResponse(BaseModel):
    share_slug: str


class AddContextRequest(BaseModel):
    additional_context: str


class AddContextResponse(BaseModel):
    run_id: UUID
    refinements_remaining: int
