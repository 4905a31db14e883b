"""Funnel analytics over a point-in-time snapshot of one owner's applications.

Everything here is a pure function of its inputs: no session, no clock, and the
result does not depend on the order of the records. Empty or partial data
degrades to zeros and empty lists instead of raising.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from jobfunnel.core.clock import as_utc
from jobfunnel.types import (
    APPLICATION_STATUSES,
    POSITIVE_STATUSES,
    RESPONDED_STATUSES,
    SUBMITTED_STATUSES,
    ApplicationSnapshot,
    CompanyCount,
    FunnelAnalytics,
    FunnelRecord,
    GroupStats,
    MetricSnapshot,
    MonthBucket,
    ResumeVersionSnapshot,
    VersionPerformance,
)

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
METHOD_MATCHED = "matched"
METHOD_MANUAL = "manual"
_UNDATED = datetime.min.replace(tzinfo=UTC)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part * 100 / whole)


def _active(records: Iterable[FunnelRecord], owner_id: int | None) -> list[FunnelRecord]:
    return [
        record
        for record in records
        if record.application.deleted_at is None
        and (owner_id is None or record.application.profile_id == owner_id)
    ]


def funnel_counts(applications: Iterable[ApplicationSnapshot]) -> dict[str, int]:
    counts = {status: 0 for status in APPLICATION_STATUSES}
    for application in applications:
        if application.status in counts:
            counts[application.status] += 1
    return counts


def response_rate(by_status: dict[str, int]) -> int:
    submitted = sum(by_status.get(status, 0) for status in SUBMITTED_STATUSES)
    positive = sum(by_status.get(status, 0) for status in POSITIVE_STATUSES)
    return percentage(positive, submitted)


def success_rate(by_status: dict[str, int]) -> int:
    submitted = sum(by_status.get(status, 0) for status in SUBMITTED_STATUSES)
    return percentage(by_status.get("offer", 0), submitted)


def average_response_days(records: Iterable[FunnelRecord]) -> int:
    samples = [
        record.metric.time_to_response_hours // 24
        for record in records
        if record.metric is not None
        and record.metric.time_to_response_hours is not None
        and record.metric.time_to_response_hours >= 0
    ]
    if not samples:
        return 0
    return round_half_up(sum(samples) / len(samples))


def group_stats(key: str, applications: Iterable[ApplicationSnapshot]) -> GroupStats:
    statuses = [application.status for application in applications]
    offers = statuses.count("offer")
    interviews = statuses.count("interview")
    return GroupStats(
        key=key,
        total=len(statuses),
        offers=offers,
        interviews=interviews,
        rejected=statuses.count("rejected"),
        success_rate=percentage(offers, len(statuses)),
        response_rate=percentage(offers + interviews, len(statuses)),
    )


def grouped_breakdown(
    applications: Iterable[ApplicationSnapshot],
    key: Callable[[ApplicationSnapshot], str],
    *,
    min_group_size: int = 2,
    limit: int = 10,
) -> list[GroupStats]:
    groups: dict[str, list[ApplicationSnapshot]] = defaultdict(list)
    for application in applications:
        groups[key(application) or ""].append(application)

    stats = [group_stats(name, members) for name, members in groups.items()]
    # Small groups are noise.
    stats = [item for item in stats if item.total >= min_group_size]
    stats.sort(key=lambda item: (-item.success_rate, -item.total, item.key))
    return stats[:limit]


def method_comparison(applications: Iterable[ApplicationSnapshot]) -> list[GroupStats]:
    matched: list[ApplicationSnapshot] = []
    manual: list[ApplicationSnapshot] = []
    for application in applications:
        (matched if application.job_posting_id is not None else manual).append(application)
    return [group_stats(METHOD_MATCHED, matched), group_stats(METHOD_MANUAL, manual)]


def applications_by_month(applications: Iterable[ApplicationSnapshot], *, months: int = 6) -> list[MonthBucket]:
    buckets: dict[tuple[int, int], MonthBucket] = {}
    for application in applications:
        created = as_utc(application.created_at)
        if created is None:
            continue
        slot = (created.year, created.month)
        bucket = buckets.get(slot)
        if bucket is None:
            bucket = MonthBucket(
                month=f"{created.year:04d}-{created.month:02d}",
                label=f"{MONTH_NAMES[created.month - 1]} {created.year}",
            )
            buckets[slot] = bucket
        bucket.applications += 1
        if application.status in RESPONDED_STATUSES:
            bucket.responses += 1
        if application.status in POSITIVE_STATUSES:
            bucket.interviews += 1

    ordered = [buckets[slot] for slot in sorted(buckets)]
    return ordered[-months:] if months > 0 else []


def top_companies(applications: Iterable[ApplicationSnapshot], *, limit: int = 5) -> list[CompanyCount]:
    counts = Counter(application.company or "" for application in applications)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [CompanyCount(company=company, count=count) for company, count in ranked[:limit]]


def compute_funnel_analytics(
    records: Iterable[FunnelRecord],
    *,
    owner_id: int | None = None,
    min_group_size: int = 2,
    top_groups: int = 10,
    series_months: int = 6,
    top_company_count: int = 5,
) -> FunnelAnalytics:
    active = _active(records, owner_id)
    applications = [record.application for record in active]
    by_status = funnel_counts(applications)

    return FunnelAnalytics(
        total_applications=len(applications),
        by_status=by_status,
        response_rate=response_rate(by_status),
        success_rate=success_rate(by_status),
        average_response_days=average_response_days(active),
        by_company=grouped_breakdown(
            applications, lambda item: item.company, min_group_size=min_group_size, limit=top_groups
        ),
        by_title=grouped_breakdown(
            applications, lambda item: item.job_title, min_group_size=min_group_size, limit=top_groups
        ),
        method_comparison=method_comparison(applications),
        applications_by_month=applications_by_month(applications, months=series_months),
        top_companies=top_companies(applications, limit=top_company_count),
    )


def compute_version_performance(
    records: Iterable[FunnelRecord],
    versions: Iterable[ResumeVersionSnapshot],
) -> list[VersionPerformance]:
    """Per resume version response/interview rates, newest version first.

    Versions no live application is linked to are left out.
    """
    linked: dict[int, list[MetricSnapshot]] = defaultdict(list)
    for record in _active(records, None):
        if record.metric is not None and record.metric.resume_version_id is not None:
            linked[record.metric.resume_version_id].append(record.metric)

    performances = []
    for version in versions:
        metrics = linked.get(version.id)
        if not metrics:
            continue
        total = len(metrics)
        hours = [m.time_to_response_hours for m in metrics if m.time_to_response_hours is not None]
        performances.append(
            VersionPerformance(
                version_id=version.id,
                title=version.title or "Untitled",
                created_at=version.created_at,
                total=total,
                response_rate=sum(1 for m in metrics if m.response_received) * 100 / total,
                interview_rate=sum(1 for m in metrics if m.interview_granted) * 100 / total,
                avg_response_hours=round_half_up(sum(hours) / len(hours)) if hours else 0,
            )
        )

    performances.sort(key=lambda item: (as_utc(item.created_at) or _UNDATED, item.version_id), reverse=True)
    return performances


def best_version(performances: Iterable[VersionPerformance]) -> VersionPerformance | None:
    ranked = list(performances)
    if not ranked:
        return None
    return max(ranked, key=lambda item: (item.interview_rate, item.response_rate, -item.version_id))
