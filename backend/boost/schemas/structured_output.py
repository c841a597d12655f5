"""
Dashboard data extracted from strategy markdown.

JSON keys stay camelCase: the dashboard reads this document as-is.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FORMATTER_VERSION = "1.0"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DayAction(_Model):
    day: int = Field(ge=1, le=7)
    action: str
    time_estimate: str = Field(alias="timeEstimate")
    success_metric: str = Field(alias="successMetric")


class WeekDayAction(_Model):
    # Days run 1..30 across the month
    day: int = Field(ge=1, le=31)
    action: str
    time_estimate: str = Field(alias="timeEstimate")
    success_metric: str = Field(alias="successMetric")


class ThisWeek(_Model):
    days: list[DayAction]
    total_hours: float | None = Field(default=None, alias="totalHours")


class WeekPlan(_Model):
    week: int = Field(ge=1, le=4)
    theme: str
    days: list[WeekDayAction]


class IceComponent(_Model):
    score: int = Field(ge=0, le=10)
    reason: str


class PriorityItem(_Model):
    rank: int = Field(ge=1)
    title: str
    ice_score: int = Field(ge=0, le=30, alias="iceScore")
    impact: IceComponent
    confidence: IceComponent
    ease: IceComponent
    description: str


class MetricItem(_Model):
    name: str
    target: str
    # acquisition, activation, retention, referral, revenue or custom
    category: str


class CompetitorItem(_Model):
    name: str
    traffic: str
    traffic_number: float | None = Field(default=None, alias="trafficNumber")
    positioning: str


class RoadmapWeek(_Model):
    week: int = Field(ge=1, le=4)
    theme: str
    tasks: list[str]


class StructuredOutput(_Model):
    this_week: ThisWeek = Field(alias="thisWeek")
    top_priorities: list[PriorityItem] = Field(alias="topPriorities")
    metrics: list[MetricItem]
    competitors: list[CompetitorItem]
    current_week: int = Field(default=1, ge=1, le=4, alias="currentWeek")
    roadmap_weeks: list[RoadmapWeek] = Field(alias="roadmapWeeks")
    weeks: list[WeekPlan] | None = None
    extracted_at: str = Field(alias="extractedAt")
    formatter_version: Literal["1.0"] = Field(alias="formatterVersion")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class PartialStructuredOutput(_Model):
    """Accepts a response with missing sections; see `normalize`."""

    this_week: ThisWeek | None = Field(default=None, alias="thisWeek")
    top_priorities: list[PriorityItem] | None = Field(default=None, alias="topPriorities")
    metrics: list[MetricItem] | None = None
    competitors: list[CompetitorItem] | None = None
    current_week: int | None = Field(default=None, ge=1, le=4, alias="currentWeek")
    roadmap_weeks: list[RoadmapWeek] | None = Field(default=None, alias="roadmapWeeks")
    weeks: list[WeekPlan] | None = None
    extracted_at: str = Field(alias="extractedAt")
    formatter_version: Literal["1.0"] = Field(alias="formatterVersion")

    def normalize(self) -> StructuredOutput:
        return StructuredOutput(
            this_week=self.this_week or ThisWeek(days=[]),
            top_priorities=self.top_priorities or [],
            metrics=self.metrics or [],
            competitors=self.competitors or [],
            current_week=self.current_week or 1,
            roadmap_weeks=self.roadmap_weeks or [],
            weeks=self.weeks,
            extracted_at=self.extracted_at,
            formatter_version=self.formatter_version,
        )
