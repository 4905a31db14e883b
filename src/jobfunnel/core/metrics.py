from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from jobfunnel.config import Settings, get_settings
from jobfunnel.db.models import ApplicationMetric
from jobfunnel.db.repositories import Repository, atomic, run_atomic
from jobfunnel.errors import NotFound
from jobfunnel.types import POSITIVE_STATUSES, RESPONDED_STATUSES

logger = logging.getLogger(__name__)


def merge_funnel_event(
    metric: Any,
    *,
    response_received: bool | None = None,
    interview_granted: bool | None = None,
    elapsed_hours: int | None = None,
) -> bool:
    """Fold an observed funnel fact into ``metric`` and report whether it changed.

    Flags only move from false to true, an interview always implies a response,
    and ``time_to_response_hours`` is written once and then kept forever.
    """
    changed = False

    if interview_granted and not metric.interview_granted:
        metric.interview_granted = True
        changed = True

    if (response_received or metric.interview_granted) and not metric.response_received:
        metric.response_received = True
        changed = True

    if elapsed_hours is not None and metric.time_to_response_hours is None:
        metric.time_to_response_hours = max(0, int(elapsed_hours))
        changed = True

    return changed


class MetricsRecorder:
    def __init__(
        self,
        session: Session,
        *,
        repo: Repository | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.repo = repo or Repository(session)
        self.settings = settings or get_settings()

    def ensure(self, application_id: int, *, commit: bool = True, status: str | None = None) -> ApplicationMetric:
        """Return the application's metric, creating it on first use.

        ``status`` seeds the flags of a freshly created row from the application's
        current funnel position; it never touches an existing row. A committed
        call that loses the insert race returns the row that won.
        """

        def unit() -> ApplicationMetric:
            if self.repo.get_application(application_id) is None:
                raise NotFound("application", application_id)
            return self.repo.get_or_create_metric(
                application_id,
                commit=False,
                response_received=status in RESPONDED_STATUSES,
                interview_granted=status in POSITIVE_STATUSES,
            )

        if not commit:
            return unit()

        metric = run_atomic(self.session, application_id, unit, attempts=self.settings.transition_max_retries)
        self.session.refresh(metric)
        return metric

    def apply_funnel_event(
        self,
        application_id: int,
        *,
        response_received: bool | None = None,
        interview_granted: bool | None = None,
        elapsed_hours: int | None = None,
        commit: bool = True,
    ) -> ApplicationMetric:
        if not commit:
            return self._merge(application_id, response_received, interview_granted, elapsed_hours)

        with atomic(self.session, application_id):
            metric = self._merge(application_id, response_received, interview_granted, elapsed_hours)
        self.session.refresh(metric)
        return metric

    def _merge(
        self,
        application_id: int,
        response_received: bool | None,
        interview_granted: bool | None,
        elapsed_hours: int | None,
    ) -> ApplicationMetric:
        metric = self.ensure(application_id, commit=False)
        changed = merge_funnel_event(
            metric,
            response_received=response_received,
            interview_granted=interview_granted,
            elapsed_hours=elapsed_hours,
        )
        if changed:
            self.repo.save_metric(metric, commit=False)
            logger.debug(
                "Metric for application %s now response=%s interview=%s hours=%s",
                application_id,
                metric.response_received,
                metric.interview_granted,
                metric.time_to_response_hours,
            )
        return metric
