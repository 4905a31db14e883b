from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from jobfunnel.config import Settings, get_settings
from jobfunnel.core.clock import Clock, elapsed_hours, utcnow
from jobfunnel.core.metrics import MetricsRecorder
from jobfunnel.db.models import Application
from jobfunnel.db.repositories import Repository, run_atomic
from jobfunnel.errors import InvalidTransition, NotFound
from jobfunnel.types import APPLICATION_STATUSES, POSITIVE_STATUSES, SUBMITTED_STATUSES

logger = logging.getLogger(__name__)


class ApplicationStateMachine:
    """Moves applications through the funnel and keeps their metric in step.

    Any status may be assigned at any time. Each write of the status, the
    ``applied_at`` stamp, the metric merge and the event row commits as one
    unit; a lost race rolls the unit back and the whole transition is retried.
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or utcnow
        self.repo = Repository(session)
        self.metrics = MetricsRecorder(session, repo=self.repo, settings=self.settings)

    def create(
        self,
        *,
        profile_id: int,
        job_title: str,
        company: str,
        job_posting_id: int | None = None,
        notes: str | None = None,
    ) -> Application:
        if self.repo.get_profile(profile_id) is None:
            raise NotFound("profile", profile_id)
        if job_posting_id is not None and self.repo.get_job_posting(job_posting_id) is None:
            raise NotFound("job posting", job_posting_id)

        application = self.repo.create_application(
            profile_id=profile_id,
            job_title=job_title,
            company=company,
            job_posting_id=job_posting_id,
            notes=notes,
            created_at=self.clock(),
        )
        logger.info("Saved application %s: %s at %s", application.id, job_title, company)
        return application

    def transition(self, application_id: int, new_status: str) -> Application:
        if new_status not in APPLICATION_STATUSES:
            raise InvalidTransition(new_status)

        def mutate(application: Application, now: datetime) -> None:
            self._enter(application, new_status, now)

        return self._run(application_id, mutate)

    def resend(self, application_id: int) -> Application:
        """Submit the application again: status ``applied`` and a fresh ``applied_at``."""

        def mutate(application: Application, now: datetime) -> None:
            application.applied_at = now
            self._enter(application, "applied", now, event_type="resent")

        return self._run(application_id, mutate)

    def soft_delete(self, application_id: int) -> Application:
        application = self.repo.soft_delete_application(application_id, when=self.clock())
        if application is None:
            raise NotFound("application", application_id)
        return application

    def _run(self, application_id: int, mutate: Callable[[Application, datetime], None]) -> Application:
        def unit() -> Application:
            application = self.repo.get_application(application_id, for_update=True)
            if application is None:
                raise NotFound("application", application_id)
            mutate(application, self.clock())
            return application

        application = run_atomic(
            self.session, application_id, unit, attempts=self.settings.transition_max_retries
        )
        self.session.refresh(application)
        return application

    def _enter(
        self,
        application: Application,
        new_status: str,
        now: datetime,
        *,
        event_type: str = "status_changed",
    ) -> None:
        previous = application.status
        # Latency is measured from the submission that was already on record.
        elapsed = elapsed_hours(application.applied_at, now) if application.applied_at else None

        application.status = new_status
        if new_status in SUBMITTED_STATUSES:
            if application.applied_at is None:
                application.applied_at = now
            self.metrics.ensure(application.id, commit=False)

        if new_status in POSITIVE_STATUSES:
            self.metrics.apply_funnel_event(
                application.id,
                response_received=True,
                interview_granted=True,
                elapsed_hours=elapsed,
                commit=False,
            )
        elif new_status == "rejected":
            self.metrics.apply_funnel_event(
                application.id,
                response_received=True,
                elapsed_hours=elapsed,
                commit=False,
            )

        self.repo.save_application(application, commit=False)
        self.repo.append_event(
            application_id=application.id,
            event_type=event_type,
            payload_json={"from": previous, "to": new_status},
            event_date=now,
            commit=False,
        )
        logger.info("Application %s: %s -> %s", application.id, previous, new_status)
