from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from jobfunnel.api.deps import get_db
from jobfunnel.api.schemas import (
    ApplicationCreateRequest,
    ApplicationEventResponse,
    ApplicationResponse,
    JobPostingCreateRequest,
    JobPostingResponse,
    MetricResponse,
    ProfileCreateRequest,
    ProfileResponse,
    ResumeCreateRequest,
    ResumeLinkRequest,
    ResumeResponse,
    ResumeVersionCreateRequest,
    ResumeVersionResponse,
    StatusChangeRequest,
)
from jobfunnel.core.attribution import ResumeAttributionResolver
from jobfunnel.core.reports import FunnelReporter
from jobfunnel.core.state_machine import ApplicationStateMachine
from jobfunnel.db.repositories import Repository
from jobfunnel.errors import ConcurrencyConflict, JobFunnelError, NotFound
from jobfunnel.types import AttributionResult, FunnelAnalytics, Insight

router = APIRouter(prefix="/api", tags=["api"])


def _http_error(exc: JobFunnelError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConcurrencyConflict):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.post("/profiles", response_model=ProfileResponse)
def create_profile(payload: ProfileCreateRequest, db: Session = Depends(get_db)) -> ProfileResponse:
    profile = Repository(db).create_profile(name=payload.name, external_user_id=payload.external_user_id)
    return ProfileResponse.model_validate(profile)


@router.get("/profiles", response_model=list[ProfileResponse])
def list_profiles(db: Session = Depends(get_db)) -> list[ProfileResponse]:
    return [ProfileResponse.model_validate(row) for row in Repository(db).list_profiles()]


@router.post("/profiles/{profile_id}/resumes", response_model=ResumeResponse)
def create_resume(profile_id: int, payload: ResumeCreateRequest, db: Session = Depends(get_db)) -> ResumeResponse:
    repo = Repository(db)
    if not repo.get_profile(profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")
    return ResumeResponse.model_validate(repo.create_resume(profile_id, title=payload.title))


@router.post("/resumes/{resume_id}/versions", response_model=ResumeVersionResponse)
def create_resume_version(
    resume_id: int,
    payload: ResumeVersionCreateRequest,
    db: Session = Depends(get_db),
) -> ResumeVersionResponse:
    repo = Repository(db)
    if not repo.get_resume(resume_id):
        raise HTTPException(status_code=404, detail="Resume not found")
    version = repo.create_resume_version(resume_id=resume_id, title=payload.title, tags=payload.tags)
    return ResumeVersionResponse.model_validate(version)


@router.get("/profiles/{profile_id}/resume-versions", response_model=list[ResumeVersionResponse])
def list_resume_versions(profile_id: int, db: Session = Depends(get_db)) -> list[ResumeVersionResponse]:
    return [ResumeVersionResponse.model_validate(row) for row in Repository(db).list_resume_versions(profile_id)]


@router.post("/job-postings", response_model=JobPostingResponse)
def create_job_posting(payload: JobPostingCreateRequest, db: Session = Depends(get_db)) -> JobPostingResponse:
    posting = Repository(db).create_job_posting(
        title=payload.title,
        company=payload.company,
        url=payload.url,
        location=payload.location,
    )
    return JobPostingResponse.model_validate(posting)


@router.post("/applications", response_model=ApplicationResponse)
def create_application(payload: ApplicationCreateRequest, db: Session = Depends(get_db)) -> ApplicationResponse:
    try:
        application = ApplicationStateMachine(db).create(
            profile_id=payload.profile_id,
            job_title=payload.job_title,
            company=payload.company,
            job_posting_id=payload.job_posting_id,
            notes=payload.notes,
        )
    except JobFunnelError as exc:
        raise _http_error(exc) from exc
    return ApplicationResponse.model_validate(application)


@router.get("/profiles/{profile_id}/applications", response_model=list[ApplicationResponse])
def list_applications(profile_id: int, db: Session = Depends(get_db)) -> list[ApplicationResponse]:
    return [ApplicationResponse.model_validate(row) for row in Repository(db).list_applications(profile_id)]


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
def get_application(application_id: int, db: Session = Depends(get_db)) -> ApplicationResponse:
    application = Repository(db).get_application(application_id)
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    return ApplicationResponse.model_validate(application)


@router.delete("/applications/{application_id}")
def delete_application(application_id: int, db: Session = Depends(get_db)) -> dict:
    try:
        ApplicationStateMachine(db).soft_delete(application_id)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc
    return {"id": application_id, "deleted": True}


@router.post("/applications/{application_id}/status", response_model=ApplicationResponse)
def change_status(
    application_id: int,
    payload: StatusChangeRequest,
    db: Session = Depends(get_db),
) -> ApplicationResponse:
    try:
        application = ApplicationStateMachine(db).transition(application_id, payload.status)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc
    return ApplicationResponse.model_validate(application)


@router.post("/applications/{application_id}/resend", response_model=ApplicationResponse)
def resend_application(application_id: int, db: Session = Depends(get_db)) -> ApplicationResponse:
    try:
        application = ApplicationStateMachine(db).resend(application_id)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc
    return ApplicationResponse.model_validate(application)


@router.get("/applications/{application_id}/metric", response_model=MetricResponse | None)
def get_metric(application_id: int, db: Session = Depends(get_db)) -> MetricResponse | None:
    repo = Repository(db)
    if repo.get_application(application_id) is None:
        raise HTTPException(status_code=404, detail="Application not found")
    metric = repo.get_metric(application_id)
    return MetricResponse.model_validate(metric) if metric else None


@router.get("/applications/{application_id}/events", response_model=list[ApplicationEventResponse])
def get_events(application_id: int, db: Session = Depends(get_db)) -> list[ApplicationEventResponse]:
    repo = Repository(db)
    if repo.get_application(application_id) is None:
        raise HTTPException(status_code=404, detail="Application not found")
    return [ApplicationEventResponse.model_validate(row) for row in repo.list_events(application_id)]


@router.get("/applications/{application_id}/resume-version", response_model=AttributionResult)
def get_resume_version(application_id: int, db: Session = Depends(get_db)) -> AttributionResult:
    try:
        return ResumeAttributionResolver(db).resolve(application_id)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc


@router.put("/applications/{application_id}/resume-version", response_model=MetricResponse)
def link_resume_version(
    application_id: int,
    payload: ResumeLinkRequest,
    db: Session = Depends(get_db),
) -> MetricResponse:
    try:
        metric = ResumeAttributionResolver(db).link(application_id, payload.resume_version_id)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc
    return MetricResponse.model_validate(metric)


@router.get("/profiles/{profile_id}/analytics", response_model=FunnelAnalytics)
def get_analytics(profile_id: int, db: Session = Depends(get_db)) -> FunnelAnalytics:
    try:
        return FunnelReporter(db).analytics(profile_id)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc


@router.get("/profiles/{profile_id}/insights", response_model=list[Insight])
def get_insights(profile_id: int, db: Session = Depends(get_db)) -> list[Insight]:
    try:
        return FunnelReporter(db).insights(profile_id)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc


@router.get("/profiles/{profile_id}/resume-performance")
def get_resume_performance(profile_id: int, db: Session = Depends(get_db)) -> dict:
    try:
        return FunnelReporter(db).resume_performance(profile_id)
    except JobFunnelError as exc:
        raise _http_error(exc) from exc
