from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy.orm import Session

from jobfunnel.config import Settings, get_settings
from jobfunnel.core.clock import as_utc
from jobfunnel.core.metrics import MetricsRecorder
from jobfunnel.db.models import ApplicationMetric
from jobfunnel.db.repositories import Repository, run_atomic
from jobfunnel.errors import NotFound
from jobfunnel.types import AttributionResult

logger = logging.getLogger(__name__)


def suggest(application: Any, candidate_versions: Iterable[Any]) -> int | None:
    """Pick the resume version most likely sent with ``application``.

    The reference date is ``applied_at`` when known, else ``created_at``. The
    newest version that already existed on that date wins. When every version
    is younger than the application the oldest one is returned instead.
    """
    dated = [
        (as_utc(version.created_at), version.id)
        for version in candidate_versions
        if version.created_at is not None
    ]
    if not dated:
        return None

    ref_date = as_utc(application.applied_at or application.created_at)
    if ref_date is not None:
        valid = [item for item in dated if item[0] <= ref_date]
        if valid:
            return max(valid)[1]

    return min(dated)[1]


class ResumeAttributionResolver:
    def __init__(
        self,
        session: Session,
        *,
        repo: Repository | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = repo or Repository(session)
        self.metrics = MetricsRecorder(session, repo=self.repo, settings=self.settings)

    def suggest_for(self, application_id: int) -> int | None:
        application = self.repo.get_application(application_id)
        if application is None:
            raise NotFound("application", application_id)
        return suggest(application, self.repo.list_resume_versions(application.profile_id))

    def resolve(self, application_id: int) -> AttributionResult:
        """Stored link first, advisory suggestion second. Nothing is written."""
        application = self.repo.get_application(application_id)
        if application is None:
            raise NotFound("application", application_id)

        metric = self.repo.get_metric(application_id)
        if metric is not None and metric.resume_version_id is not None:
            return AttributionResult(
                application_id=application_id,
                version_id=metric.resume_version_id,
                source="linked",
            )

        suggested = suggest(application, self.repo.list_resume_versions(application.profile_id))
        if suggested is None:
            return AttributionResult(application_id=application_id)
        return AttributionResult(application_id=application_id, version_id=suggested, source="suggested")

    def link(self, application_id: int, resume_version_id: int) -> ApplicationMetric:
        def unit() -> ApplicationMetric:
            application = self.repo.get_application(application_id, for_update=True)
            if application is None:
                raise NotFound("application", application_id)
            if self.repo.get_resume_version_owner(resume_version_id) != application.profile_id:
                raise NotFound("resume version", resume_version_id)

            metric = self.metrics.ensure(application_id, commit=False, status=application.status)
            previous = metric.resume_version_id
            metric.resume_version_id = resume_version_id
            self.repo.save_metric(metric, commit=False)
            self.repo.append_event(
                application_id=application_id,
                event_type="resume_linked",
                payload_json={"from": previous, "to": resume_version_id},
                commit=False,
            )
            return metric

        metric = run_atomic(self.session, application_id, unit, attempts=self.settings.transition_max_retries)
        self.session.refresh(metric)
        logger.info("Linked resume version %s to application %s", resume_version_id, application_id)
        return metric
