from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ApplicationStatus = Literal["planned", "applied", "interview", "offer", "rejected"]
APPLICATION_STATUSES: tuple[str, ...] = ("planned", "applied", "interview", "offer", "rejected")

# Statuses an application can only hold after it was submitted.
SUBMITTED_STATUSES = frozenset({"applied", "interview", "offer", "rejected"})
POSITIVE_STATUSES = frozenset({"interview", "offer"})
RESPONDED_STATUSES = frozenset({"interview", "offer", "rejected"})

AttributionSource = Literal["linked", "suggested", "none"]
AlertType = Literal["low_response", "low_interview", "slow_response"]
AlertSeverity = Literal["warning", "critical"]


class ApplicationSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: int
    job_title: str = ""
    company: str = ""
    status: str = "planned"
    applied_at: datetime | None = None
    created_at: datetime | None = None
    job_posting_id: int | None = None
    notes: str | None = None
    deleted_at: datetime | None = None


class MetricSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    application_id: int
    response_received: bool = False
    interview_granted: bool = False
    time_to_response_hours: int | None = None
    resume_version_id: int | None = None


class ResumeVersionSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    resume_id: int
    title: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class FunnelRecord(BaseModel):
    application: ApplicationSnapshot
    metric: MetricSnapshot | None = None


class GroupStats(BaseModel):
    key: str
    total: int = 0
    offers: int = 0
    interviews: int = 0
    rejected: int = 0
    success_rate: int = 0
    response_rate: int = 0


class MonthBucket(BaseModel):
    month: str
    label: str
    applications: int = 0
    responses: int = 0
    interviews: int = 0


class CompanyCount(BaseModel):
    company: str
    count: int


class FunnelAnalytics(BaseModel):
    total_applications: int = 0
    by_status: dict[str, int] = Field(default_factory=lambda: {status: 0 for status in APPLICATION_STATUSES})
    response_rate: int = 0
    success_rate: int = 0
    average_response_days: int = 0
    by_company: list[GroupStats] = Field(default_factory=list)
    by_title: list[GroupStats] = Field(default_factory=list)
    method_comparison: list[GroupStats] = Field(default_factory=list)
    applications_by_month: list[MonthBucket] = Field(default_factory=list)
    top_companies: list[CompanyCount] = Field(default_factory=list)


class Insight(BaseModel):
    kind: str
    title: str
    message: str


class VersionPerformance(BaseModel):
    version_id: int
    title: str
    created_at: datetime | None = None
    total: int = 0
    response_rate: float = 0.0
    interview_rate: float = 0.0
    avg_response_hours: int = 0


class PerformanceAlert(BaseModel):
    version_id: int
    version_title: str
    alert_type: AlertType
    severity: AlertSeverity
    current_value: float
    best_value: float
    best_version_title: str
    recommendation: str


class AttributionResult(BaseModel):
    application_id: int
    version_id: int | None = None
    source: AttributionSource = "none"
