from __future__ import annotations

from dataclasses import dataclass

from jobfunnel.config import Settings
from jobfunnel.core.analytics import METHOD_MANUAL, METHOD_MATCHED, best_version
from jobfunnel.types import (
    SUBMITTED_STATUSES,
    FunnelAnalytics,
    Insight,
    PerformanceAlert,
    VersionPerformance,
)

METHOD_LABELS = {METHOD_MATCHED: "Matched job postings", METHOD_MANUAL: "Manual applications"}


@dataclass(slots=True)
class InsightRules:
    low_response_rate: int = 20
    slow_response_days: int = 14
    planned_backlog: int = 5
    success_rate: int = 10
    company_success_rate: int = 30
    method_gap: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> InsightRules:
        return cls(
            low_response_rate=settings.insight_low_response_rate,
            slow_response_days=settings.insight_slow_response_days,
            planned_backlog=settings.insight_planned_backlog,
            success_rate=settings.insight_success_rate,
            company_success_rate=settings.insight_company_success_rate,
            method_gap=settings.insight_method_gap,
        )


@dataclass(slots=True)
class AlertRules:
    min_applications: int = 5
    response_gap: float = 20.0
    interview_gap: float = 15.0
    slow_factor: float = 1.5

    @classmethod
    def from_settings(cls, settings: Settings) -> AlertRules:
        return cls(
            min_applications=settings.alert_min_applications,
            response_gap=settings.alert_response_gap,
            interview_gap=settings.alert_interview_gap,
            slow_factor=settings.alert_slow_factor,
        )


def generate_insights(analytics: FunnelAnalytics, rules: InsightRules | None = None) -> list[Insight]:
    rules = rules or InsightRules()
    insights: list[Insight] = []
    by_status = analytics.by_status or {}
    submitted = sum(by_status.get(status, 0) for status in SUBMITTED_STATUSES)

    if submitted > 0 and analytics.response_rate < rules.low_response_rate:
        insights.append(
            Insight(
                kind="low_response_rate",
                title="Low Response Rate",
                message=(
                    "Consider tailoring your applications more to each role and "
                    "highlighting relevant experience."
                ),
            )
        )

    if analytics.average_response_days > rules.slow_response_days:
        insights.append(
            Insight(
                kind="slow_responses",
                title="Slow Response Times",
                message=(
                    "Companies are taking a while to respond. Follow up after "
                    f"{rules.slow_response_days // 7} weeks if you haven't heard back."
                ),
            )
        )

    planned = by_status.get("planned", 0)
    if planned > rules.planned_backlog:
        insights.append(
            Insight(
                kind="planned_backlog",
                title="Pending Applications",
                message=f"You have {planned} saved jobs. Time to start applying!",
            )
        )

    if analytics.success_rate > rules.success_rate:
        insights.append(
            Insight(
                kind="strong_success_rate",
                title="Great Success Rate!",
                message="Your applications are resonating with employers. Keep up the momentum!",
            )
        )

    if analytics.by_company:
        standout = min(analytics.by_company, key=lambda item: (-item.success_rate, -item.total, item.key))
        if standout.success_rate > rules.company_success_rate:
            insights.append(
                Insight(
                    kind="standout_company",
                    title=f"High Success at {standout.key}",
                    message=(
                        f"You have a {standout.success_rate}% success rate here. "
                        "Consider applying to similar companies."
                    ),
                )
            )

    methods = sorted(
        (item for item in analytics.method_comparison if item.total > 0),
        key=lambda item: -item.success_rate,
    )
    if len(methods) >= 2 and methods[0].success_rate > methods[1].success_rate + rules.method_gap:
        leader, runner_up = methods[0], methods[1]
        leader_label = METHOD_LABELS.get(leader.key, leader.key)
        runner_label = METHOD_LABELS.get(runner_up.key, runner_up.key)
        insights.append(
            Insight(
                kind="method_gap",
                title=f"{leader_label} Performing Better",
                message=(
                    f"Your success rate is {leader.success_rate}% with {leader_label.lower()} "
                    f"vs {runner_up.success_rate}% with {runner_label.lower()}."
                ),
            )
        )

    return insights


def generate_performance_alerts(
    performances: list[VersionPerformance],
    rules: AlertRules | None = None,
) -> list[PerformanceAlert]:
    """Flag resume versions that trail the best performing one.

    Comparisons need at least two versions with linked applications.
    """
    rules = rules or AlertRules()
    active = [item for item in performances if item.total > 0]
    if len(active) < 2:
        return []

    best_response = max(active, key=lambda item: (item.response_rate, -item.version_id))
    best_interview = best_version(active)
    timed = [item for item in active if item.avg_response_hours > 0]
    fastest = min(timed, key=lambda item: (item.avg_response_hours, item.version_id)) if len(timed) > 1 else None

    alerts: list[PerformanceAlert] = []
    for item in active:
        gap = best_response.response_rate - item.response_rate
        if (
            item.version_id != best_response.version_id
            and gap > rules.response_gap
            and item.total >= rules.min_applications
        ):
            alerts.append(
                PerformanceAlert(
                    version_id=item.version_id,
                    version_title=item.title,
                    alert_type="low_response",
                    severity="critical" if gap > rules.response_gap * 2 else "warning",
                    current_value=item.response_rate,
                    best_value=best_response.response_rate,
                    best_version_title=best_response.title,
                    recommendation=(
                        f'Your "{item.title}" resume has a {item.response_rate:.1f}% response rate, '
                        f'which is {gap:.1f}% lower than "{best_response.title}". Consider switching '
                        "to the better performing version for future applications."
                    ),
                )
            )

        gap = best_interview.interview_rate - item.interview_rate
        if (
            item.version_id != best_interview.version_id
            and gap > rules.interview_gap
            and item.total >= rules.min_applications
        ):
            alerts.append(
                PerformanceAlert(
                    version_id=item.version_id,
                    version_title=item.title,
                    alert_type="low_interview",
                    severity="critical" if gap > rules.interview_gap * 2 else "warning",
                    current_value=item.interview_rate,
                    best_value=best_interview.interview_rate,
                    best_version_title=best_interview.title,
                    recommendation=(
                        f'Your "{item.title}" resume has a {item.interview_rate:.1f}% interview rate, '
                        f'which is {gap:.1f}% lower than "{best_interview.title}". This version may '
                        "not be highlighting your strengths effectively."
                    ),
                )
            )

        if (
            fastest is not None
            and item.avg_response_hours > 0
            and item.version_id != fastest.version_id
            and item.avg_response_hours > fastest.avg_response_hours * rules.slow_factor
        ):
            alerts.append(
                PerformanceAlert(
                    version_id=item.version_id,
                    version_title=item.title,
                    alert_type="slow_response",
                    severity="warning",
                    current_value=item.avg_response_hours,
                    best_value=fastest.avg_response_hours,
                    best_version_title=fastest.title,
                    recommendation=(
                        f'Companies take {item.avg_response_hours}h on average to respond to "{item.title}", '
                        f'compared to {fastest.avg_response_hours}h for "{fastest.title}". A faster '
                        "response time often indicates better alignment with job requirements."
                    ),
                )
            )

    return alerts
