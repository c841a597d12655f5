from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..services.validation import is_public_host, normalize_url
from .runs import RunInput


def _website_url(v: str) -> str:
    try:
        url = normalize_url(v)
    except ValueError as exc:
        raise ValueError("Please enter a valid website URL") from exc
    if not is_public_host(url):
        raise ValueError("Please enter a public website URL")
    return url


def _blank_to_none(v):
    if v is None:
        return None
    if isinstance(v, str):
        stripped = v.strip()
        return stripped or None
    return v


class FreeToolGuardFields(BaseModel):
    """Fields every free-tool form posts alongside its own input."""

    email: str = ""
    turnstile_token: str | None = None
    # Honeypot: hidden from humans, filled in by bots
    website: str | None = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class HeadlineAnalyzerRequest(FreeToolGuardFields):
    headline: str = Field(min_length=3, max_length=300)
    what_they_sell: str | None = Field(default=None, max_length=500)
    who_its_for: str | None = Field(default=None, max_length=300)

    @field_validator("what_they_sell", "who_its_for", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("headline", mode="before")
    @classmethod
    def _strip_headline(cls, v):
        return v.strip() if isinstance(v, str) else v


class EmailSubjectScorerRequest(FreeToolGuardFields):
    subject_line: str = Field(min_length=3, max_length=200)
    email_about: str | None = Field(default=None, max_length=500)
    audience: str | None = Field(default=None, max_length=300)

    @field_validator("email_about", "audience", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("subject_line", mode="before")
    @classmethod
    def _strip_subject(cls, v):
        return v.strip() if isinstance(v, str) else v


class CompetitorFinderRequest(FreeToolGuardFields):
    url: str = Field(min_length=5, max_length=500)
    description: str = Field(min_length=10, max_length=500)

    @field_validator("url", "description", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        return _website_url(v)


class TargetAudienceRequest(FreeToolGuardFields):
    business_name: str = Field(min_length=2, max_length=100)
    what_they_sell: str = Field(min_length=10, max_length=500)
    target_customer: str | None = Field(default=None, max_length=500)

    @field_validator("target_customer", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("business_name", "what_they_sell", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class MarketingAuditRequest(FreeToolGuardFields):
    url: str = Field(min_length=5, max_length=500)
    business_description: str = Field(min_length=10, max_length=500)

    @field_validator("url", "business_description", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        return _website_url(v)


# ---------------------------------------------------------------------------
# LLM outputs (validated before persisting)
# ---------------------------------------------------------------------------

class _Output(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HeadlineScores(_Output):
    clarity: float
    specificity: float
    differentiation: float
    customer_focus: float = Field(alias="customerFocus")


class HeadlineAnalysis(_Output):
    clarity: str
    specificity: str
    differentiation: str
    customer_focus: str = Field(alias="customerFocus")


class HeadlineRewrite(_Output):
    headline: str
    why: str


class HeadlineAnalysisOutput(_Output):
    overall: float
    scores: HeadlineScores
    verdict: str = Field(min_length=1)
    analysis: HeadlineAnalysis
    rewrites: list[HeadlineRewrite] = Field(min_length=1)


class EmailSubjectScores(_Output):
    clarity: float
    urgency: float
    curiosity: float
    relevance: float


class EmailSubjectAnalysis(_Output):
    clarity: str
    urgency: str
    curiosity: str
    relevance: str


class EmailSubjectRewrite(_Output):
    subject: str
    why: str


class EmailSubjectAnalysisOutput(_Output):
    overall: float
    scores: EmailSubjectScores
    verdict: str = Field(min_length=1)
    analysis: EmailSubjectAnalysis
    rewrites: list[EmailSubjectRewrite] = Field(min_length=1)


class FoundCompetitor(_Output):
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    description: str = Field(min_length=1)
    positioning: str = Field(min_length=1)
    weakness: str = Field(min_length=1)
    opportunity: str = Field(min_length=1)


class CompetitorFinderOutput(_Output):
    competitors: list[FoundCompetitor] = Field(min_length=1)
    summary: str = Field(min_length=1)


class Demographics(_Output):
    age_range: str = Field(alias="ageRange")
    gender: str
    income: str
    education: str
    location: str


class Psychographics(_Output):
    values: list[str]
    interests: list[str]
    lifestyle: str


class AudienceChannel(_Output):
    platform: str
    detail: str


class PrimaryAudience(_Output):
    headline: str = Field(min_length=1)
    demographics: Demographics
    psychographics: Psychographics
    pain_points: list[str] = Field(alias="painPoints", min_length=1)
    buying_triggers: list[str] = Field(alias="buyingTriggers", min_length=1)
    objections: list[str] = Field(min_length=1)
    where_to_find: list[AudienceChannel] = Field(alias="whereToFind", min_length=1)
    day_in_the_life: str = Field(alias="dayInTheLife")


class MessagingGuide(_Output):
    hook_examples: list[str] = Field(alias="hookExamples", min_length=1)
    tone_advice: str = Field(alias="toneAdvice")
    words_to_use: list[str] = Field(alias="wordsToUse")
    words_to_avoid: list[str] = Field(alias="wordsToAvoid")


class TargetAudienceOutput(_Output):
    primary_audience: PrimaryAudience = Field(alias="primaryAudience")
    messaging_guide: MessagingGuide = Field(alias="messagingGuide")
    competitor_insight: str = Field(alias="competitorInsight")


class AuditFinding(_Output):
    category: Literal["clarity", "customer-focus", "proof", "friction"]
    title: str = Field(min_length=1)
    detail: str = Field(min_length=1)
    recommendation: str = Field(min_length=1)


class MarketingAuditOutput(_Output):
    silent_killer: str = Field(alias="silentKiller", min_length=1)
    summary: str = Field(min_length=1)
    findings: list[AuditFinding] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class FreeToolCreated(BaseModel):
    slug: str


class FreeToolsOut(BaseModel):
    tools: list[str]


class FreeToolResultOut(BaseModel):
    slug: str
    tool_type: str
    input: dict[str, Any]
    output: dict[str, Any] | None = None
    status: str
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class FreeAuditRequest(BaseModel):
    email: str
    input: RunInput
    source: Literal["organic", "abandoned_checkout"] = "organic"


class FreeAuditCreated(BaseModel):
    id: str
    token: str


class FreeAuditOut(BaseModel):
    id: str
    email: str  # masked
    status: str
    output: str | None = None
    structured_output: dict[str, Any] | None = None
    created_at: datetime
    completed_at: datetime | None = None
