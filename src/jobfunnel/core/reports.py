from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from jobfunnel.config import Settings, get_settings
from jobfunnel.core.analytics import best_version, compute_funnel_analytics, compute_version_performance
from jobfunnel.core.insights import AlertRules, InsightRules, generate_insights, generate_performance_alerts
from jobfunnel.db.repositories import Repository
from jobfunnel.errors import NotFound
from jobfunnel.types import FunnelAnalytics, Insight

logger = logging.getLogger(__name__)


class FunnelReporter:
    """Reads one owner's snapshot and runs the pure analytics over it."""

    def __init__(self, session: Session, *, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.repo = Repository(session)

    def _require_profile(self, owner_id: int) -> None:
        if self.repo.get_profile(owner_id) is None:
            raise NotFound("profile", owner_id)

    def analytics(self, owner_id: int) -> FunnelAnalytics:
        self._require_profile(owner_id)
        records = self.repo.list_funnel_records(owner_id)
        logger.debug("Aggregating %s applications for profile %s", len(records), owner_id)
        return compute_funnel_analytics(
            records,
            owner_id=owner_id,
            min_group_size=self.settings.analytics_min_group_size,
            top_groups=self.settings.analytics_top_groups,
            series_months=self.settings.analytics_series_months,
            top_company_count=self.settings.analytics_top_companies,
        )

    def insights(self, owner_id: int) -> list[Insight]:
        return generate_insights(self.analytics(owner_id), InsightRules.from_settings(self.settings))

    def resume_performance(self, owner_id: int) -> dict:
        self._require_profile(owner_id)
        performances = compute_version_performance(
            self.repo.list_funnel_records(owner_id),
            self.repo.list_resume_version_snapshots(owner_id),
        )
        best = best_version(performances)
        alerts = generate_performance_alerts(performances, AlertRules.from_settings(self.settings))
        return {
            "versions": [item.model_dump(mode="json") for item in performances],
            "best_version_id": best.version_id if best else None,
            "alerts": [item.model_dump(mode="json") for item in alerts],
        }
