from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TypeVar

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from jobfunnel.core.clock import utcnow
from jobfunnel.db.base import Base
from jobfunnel.db.models import (
    Application,
    ApplicationEvent,
    ApplicationMetric,
    JobPosting,
    Profile,
    Resume,
    ResumeVersion,
)
from jobfunnel.errors import ConcurrencyConflict
from jobfunnel.types import ApplicationSnapshot, FunnelRecord, MetricSnapshot, ResumeVersionSnapshot

logger = logging.getLogger(__name__)


# SQLite names the column, other backends name the unique index.
_METRIC_ROW_MARKERS = ("application_metrics.application_id", "ix_application_metrics_application_id")

T = TypeVar("T")


def is_duplicate_metric(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in _METRIC_ROW_MARKERS)


@contextmanager
def atomic(session: Session, application_id: int) -> Iterator[None]:
    """Commit everything written inside the block as one unit, or nothing.

    Lost optimistic-lock races (stale version counter, duplicate metric row)
    surface as ``ConcurrencyConflict``; any other error rolls back and propagates.
    """
    try:
        yield
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        raise ConcurrencyConflict(application_id) from exc
    except IntegrityError as exc:
        session.rollback()
        if is_duplicate_metric(exc):
            raise ConcurrencyConflict(application_id) from exc
        raise
    except Exception:
        session.rollback()
        raise


def run_atomic(session: Session, application_id: int, unit: Callable[[], T], *, attempts: int) -> T:
    """Run ``unit`` inside ``atomic``, re-running all of it after a lost race.

    ``unit`` must re-read what it changes; the rollback expires every loaded row.
    """
    for attempt in range(1, attempts + 1):
        try:
            with atomic(session, application_id):
                result = unit()
        except ConcurrencyConflict:
            logger.warning(
                "Concurrent write on application %s, retrying (%s/%s)",
                application_id,
                attempt,
                attempts,
            )
            continue
        return result

    raise ConcurrencyConflict(application_id, attempts)


class Repository:
    """Record-store boundary for applications, metrics and resume versions.

    Write helpers commit by default. Passing ``commit=False`` only flushes, so a
    caller can group several writes into one transaction and commit (or roll back)
    them together.
    """

    def __init__(self, session: Session):
        self.session = session

    def _persist(self, obj: Base, commit: bool) -> None:
        self.session.add(obj)
        if commit:
            self.session.commit()
            self.session.refresh(obj)
        else:
            self.session.flush()

    def create_profile(self, name: str, external_user_id: str = "") -> Profile:
        profile = Profile(name=name, external_user_id=external_user_id)
        self._persist(profile, commit=True)
        return profile

    def get_profile(self, profile_id: int) -> Profile | None:
        return self.session.get(Profile, profile_id)

    def list_profiles(self) -> list[Profile]:
        return list(self.session.scalars(select(Profile).order_by(Profile.id.desc())).all())

    def create_resume(self, profile_id: int, title: str = "") -> Resume:
        resume = Resume(profile_id=profile_id, title=title)
        self._persist(resume, commit=True)
        return resume

    def get_resume(self, resume_id: int) -> Resume | None:
        return self.session.get(Resume, resume_id)

    def create_resume_version(
        self,
        *,
        resume_id: int,
        title: str = "",
        tags: list[str] | None = None,
        created_at: datetime | None = None,
    ) -> ResumeVersion:
        version = ResumeVersion(resume_id=resume_id, title=title, tags_json=sorted(set(tags or [])))
        if created_at is not None:
            version.created_at = created_at
        self._persist(version, commit=True)
        return version

    def get_resume_version(self, version_id: int) -> ResumeVersion | None:
        return self.session.get(ResumeVersion, version_id)

    def get_resume_version_owner(self, version_id: int) -> int | None:
        statement = (
            select(Resume.profile_id)
            .join(ResumeVersion, ResumeVersion.resume_id == Resume.id)
            .where(ResumeVersion.id == version_id)
        )
        return self.session.scalar(statement)

    def list_resume_versions(self, owner_id: int) -> list[ResumeVersion]:
        statement = (
            select(ResumeVersion)
            .join(Resume, ResumeVersion.resume_id == Resume.id)
            .where(Resume.profile_id == owner_id)
            .order_by(ResumeVersion.created_at.desc(), ResumeVersion.id.desc())
        )
        return list(self.session.scalars(statement).all())

    def list_resume_version_snapshots(self, owner_id: int) -> list[ResumeVersionSnapshot]:
        return [ResumeVersionSnapshot.model_validate(row) for row in self.list_resume_versions(owner_id)]

    def create_job_posting(self, *, title: str, company: str, url: str = "", location: str = "") -> JobPosting:
        posting = JobPosting(title=title, company=company, url=url, location=location)
        self._persist(posting, commit=True)
        return posting

    def get_job_posting(self, job_posting_id: int) -> JobPosting | None:
        return self.session.get(JobPosting, job_posting_id)

    def create_application(
        self,
        *,
        profile_id: int,
        job_title: str,
        company: str,
        job_posting_id: int | None = None,
        notes: str | None = None,
        created_at: datetime | None = None,
    ) -> Application:
        application = Application(
            profile_id=profile_id,
            job_title=job_title,
            company=company,
            job_posting_id=job_posting_id,
            notes=notes,
            status="planned",
        )
        if created_at is not None:
            application.created_at = created_at
        self._persist(application, commit=True)
        return application

    def get_application(self, application_id: int, *, for_update: bool = False) -> Application | None:
        statement = select(Application).where(
            and_(Application.id == application_id, Application.deleted_at.is_(None))
        )
        if for_update:
            statement = statement.with_for_update()
        return self.session.scalar(statement)

    def list_applications(self, owner_id: int, include_deleted: bool = False) -> list[Application]:
        statement = select(Application).where(Application.profile_id == owner_id)
        if not include_deleted:
            statement = statement.where(Application.deleted_at.is_(None))
        statement = statement.order_by(Application.created_at.desc(), Application.id.desc())
        return list(self.session.scalars(statement).all())

    def save_application(self, application: Application, *, commit: bool = True) -> Application:
        self._persist(application, commit=commit)
        return application

    def soft_delete_application(self, application_id: int, *, when: datetime | None = None) -> Application | None:
        application = self.get_application(application_id)
        if application is None:
            return None
        application.deleted_at = when or utcnow()
        self._persist(application, commit=True)
        logger.info("Soft-deleted application %s", application_id)
        return application

    def get_metric(self, application_id: int, *, for_update: bool = False) -> ApplicationMetric | None:
        statement = select(ApplicationMetric).where(ApplicationMetric.application_id == application_id)
        if for_update:
            statement = statement.with_for_update()
        return self.session.scalar(statement)

    def get_or_create_metric(
        self,
        application_id: int,
        *,
        commit: bool = True,
        response_received: bool = False,
        interview_granted: bool = False,
    ) -> ApplicationMetric:
        existing = self.get_metric(application_id, for_update=True)
        if existing:
            return existing

        metric = ApplicationMetric(
            application_id=application_id,
            response_received=response_received or interview_granted,
            interview_granted=interview_granted,
        )
        self._persist(metric, commit=commit)
        return metric

    def save_metric(self, metric: ApplicationMetric, *, commit: bool = True) -> ApplicationMetric:
        self._persist(metric, commit=commit)
        return metric

    def append_event(
        self,
        *,
        application_id: int,
        event_type: str,
        payload_json: dict | None = None,
        event_date: datetime | None = None,
        commit: bool = True,
    ) -> ApplicationEvent:
        event = ApplicationEvent(
            application_id=application_id,
            event_type=event_type,
            event_date=event_date or utcnow(),
            payload_json=payload_json or {},
        )
        self._persist(event, commit=commit)
        return event

    def list_events(self, application_id: int) -> list[ApplicationEvent]:
        statement = (
            select(ApplicationEvent)
            .where(ApplicationEvent.application_id == application_id)
            .order_by(ApplicationEvent.event_date.asc(), ApplicationEvent.id.asc())
        )
        return list(self.session.scalars(statement).all())

    def list_funnel_records(self, owner_id: int) -> list[FunnelRecord]:
        statement = (
            select(Application, ApplicationMetric)
            .outerjoin(ApplicationMetric, ApplicationMetric.application_id == Application.id)
            .where(and_(Application.profile_id == owner_id, Application.deleted_at.is_(None)))
            .order_by(Application.id.asc())
        )
        return [
            FunnelRecord(
                application=ApplicationSnapshot.model_validate(application),
                metric=MetricSnapshot.model_validate(metric) if metric is not None else None,
            )
            for application, metric in self.session.execute(statement).all()
        ]
