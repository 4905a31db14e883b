from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProfileCreateRequest(BaseModel):
    name: str
    external_user_id: str = ""


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    external_user_id: str


class ResumeCreateRequest(BaseModel):
    title: str = ""


class ResumeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: int
    title: str


class ResumeVersionCreateRequest(BaseModel):
    title: str = ""
    tags: list[str] = Field(default_factory=list)


class ResumeVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    resume_id: int
    title: str
    tags: list[str]
    created_at: datetime | None = None


class JobPostingCreateRequest(BaseModel):
    title: str
    company: str
    url: str = ""
    location: str = ""


class JobPostingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    company: str
    url: str
    location: str


class ApplicationCreateRequest(BaseModel):
    profile_id: int
    job_title: str
    company: str
    job_posting_id: int | None = None
    notes: str | None = None


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: int
    job_title: str
    company: str
    status: str
    applied_at: datetime | None = None
    created_at: datetime | None = None
    job_posting_id: int | None = None
    notes: str | None = None


class StatusChangeRequest(BaseModel):
    # Kept as a plain string so unknown values reach the state machine and are
    # reported as invalid transitions.
    status: str


class MetricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    application_id: int
    response_received: bool
    interview_granted: bool
    time_to_response_hours: int | None = None
    resume_version_id: int | None = None


class ResumeLinkRequest(BaseModel):
    resume_version_id: int


class ApplicationEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    application_id: int
    event_type: str
    event_date: datetime
    payload_json: dict[str, Any] = Field(default_factory=dict)
