import random
from datetime import UTC, datetime

from jobfunnel.core.analytics import (
    best_version,
    compute_funnel_analytics,
    compute_version_performance,
    percentage,
    round_half_up,
)
from jobfunnel.types import ApplicationSnapshot, FunnelRecord, MetricSnapshot, ResumeVersionSnapshot

_NEXT_ID = iter(range(1, 10_000))


def _record(
    status: str,
    company: str = "Acme",
    *,
    title: str = "Engineer",
    created: datetime = datetime(2024, 1, 5, tzinfo=UTC),
    hours: int | None = None,
    version_id: int | None = None,
    posting: int | None = None,
    deleted: bool = False,
    profile_id: int = 1,
) -> FunnelRecord:
    application_id = next(_NEXT_ID)
    metric = None
    if hours is not None or version_id is not None or status != "planned":
        metric = MetricSnapshot(
            application_id=application_id,
            response_received=status in {"interview", "offer", "rejected"},
            interview_granted=status in {"interview", "offer"},
            time_to_response_hours=hours,
            resume_version_id=version_id,
        )
    return FunnelRecord(
        application=ApplicationSnapshot(
            id=application_id,
            profile_id=profile_id,
            job_title=title,
            company=company,
            status=status,
            created_at=created,
            job_posting_id=posting,
            deleted_at=datetime(2024, 6, 1, tzinfo=UTC) if deleted else None,
        ),
        metric=metric,
    )


def test_company_breakdown_filters_small_groups() -> None:
    records = [
        _record("offer"),
        _record("offer"),
        _record("interview"),
        _record("rejected"),
        _record("rejected"),
        _record("applied", "Globex"),
    ]

    analytics = compute_funnel_analytics(records)

    assert [group.key for group in analytics.by_company] == ["Acme"]
    acme = analytics.by_company[0]
    assert (acme.total, acme.offers, acme.interviews, acme.rejected) == (5, 2, 1, 2)
    assert acme.success_rate == 40
    assert acme.response_rate == 60


def test_empty_input_degrades_to_zeros() -> None:
    analytics = compute_funnel_analytics([])
    assert analytics.total_applications == 0
    assert analytics.response_rate == 0
    assert analytics.success_rate == 0
    assert analytics.average_response_days == 0
    assert analytics.by_company == []
    assert analytics.applications_by_month == []
    assert set(analytics.by_status) == {"planned", "applied", "interview", "offer", "rejected"}


def test_only_planned_applications_have_zero_rates() -> None:
    analytics = compute_funnel_analytics([_record("planned"), _record("planned")])
    assert analytics.by_status["planned"] == 2
    assert analytics.response_rate == 0
    assert analytics.success_rate == 0


def test_rates_count_submitted_applications_only() -> None:
    records = [_record("planned"), _record("applied"), _record("interview"), _record("offer")]
    analytics = compute_funnel_analytics(records)
    # 2 positive out of 3 submitted.
    assert analytics.response_rate == 67
    assert analytics.success_rate == 33


def test_rates_stay_within_bounds() -> None:
    statuses = ["planned", "applied", "interview", "offer", "rejected"]
    rng = random.Random(7)
    for _ in range(20):
        records = [_record(rng.choice(statuses)) for _ in range(rng.randint(0, 15))]
        analytics = compute_funnel_analytics(records)
        for value in (analytics.response_rate, analytics.success_rate):
            assert 0 <= value <= 100
        for group in analytics.by_company + analytics.by_title + analytics.method_comparison:
            assert 0 <= group.success_rate <= 100
            assert 0 <= group.response_rate <= 100


def test_result_is_independent_of_record_order() -> None:
    records = [
        _record("offer", "Acme", hours=30, created=datetime(2024, 2, 3, tzinfo=UTC)),
        _record("interview", "Acme", hours=192, created=datetime(2024, 3, 9, tzinfo=UTC)),
        _record("rejected", "Globex", hours=50),
        _record("rejected", "Globex", posting=4),
        _record("applied", "Initech", posting=5),
        _record("planned", "Initech"),
    ]
    expected = compute_funnel_analytics(records)
    rng = random.Random(11)
    for _ in range(10):
        shuffled = records[:]
        rng.shuffle(shuffled)
        assert compute_funnel_analytics(shuffled) == expected


def test_average_response_days_floors_each_sample() -> None:
    records = [_record("interview", hours=192), _record("rejected", hours=30), _record("applied")]
    # 8 days and 1 day average to 4.5, rounded half up.
    assert compute_funnel_analytics(records).average_response_days == 5


def test_soft_deleted_and_foreign_records_are_ignored() -> None:
    records = [
        _record("offer"),
        _record("offer", deleted=True),
        _record("offer", profile_id=2),
    ]
    analytics = compute_funnel_analytics(records, owner_id=1)
    assert analytics.total_applications == 1
    assert analytics.by_status["offer"] == 1


def test_monthly_series_keeps_latest_months_in_order() -> None:
    records = [_record("applied", created=datetime(2023, month, 10, tzinfo=UTC)) for month in range(1, 13)]
    records.append(_record("interview", created=datetime(2024, 1, 2, tzinfo=UTC)))
    records.append(_record("rejected", created=datetime(2024, 1, 20, tzinfo=UTC)))

    series = compute_funnel_analytics(records).applications_by_month

    assert [bucket.month for bucket in series] == ["2023-08", "2023-09", "2023-10", "2023-11", "2023-12", "2024-01"]
    assert series[-1].label == "Jan 2024"
    assert (series[-1].applications, series[-1].responses, series[-1].interviews) == (2, 2, 1)


def test_method_comparison_splits_on_job_posting() -> None:
    records = [
        _record("offer", posting=1),
        _record("applied", posting=2),
        _record("rejected"),
        _record("applied"),
        _record("applied"),
    ]
    matched, manual = compute_funnel_analytics(records).method_comparison
    assert (matched.key, matched.total, matched.success_rate) == ("matched", 2, 50)
    assert (manual.key, manual.total, manual.success_rate) == ("manual", 3, 0)


def test_group_ties_break_on_size_then_name() -> None:
    records = [
        _record("applied", "Zeta"),
        _record("applied", "Zeta"),
        _record("applied", "Alpha"),
        _record("applied", "Alpha"),
        _record("applied", "Beta"),
        _record("applied", "Beta"),
        _record("applied", "Beta"),
    ]
    keys = [group.key for group in compute_funnel_analytics(records).by_company]
    assert keys == ["Beta", "Alpha", "Zeta"]


def test_top_companies_ranks_by_volume() -> None:
    records = [_record("applied", company) for company in ["A", "B", "B", "C", "C", "C", "D", "E", "F"]]
    top = compute_funnel_analytics(records).top_companies
    assert [(item.company, item.count) for item in top] == [("C", 3), ("B", 2), ("A", 1), ("D", 1), ("E", 1)]


def test_company_names_are_grouped_verbatim() -> None:
    records = [
        _record("offer", "Acme"),
        _record("offer", "Acme"),
        _record("rejected", "Acme "),
        _record("rejected", "Acme "),
        _record("rejected", "Acme "),
    ]
    analytics = compute_funnel_analytics(records)

    groups = {group.key: group for group in analytics.by_company}
    assert set(groups) == {"Acme", "Acme "}
    assert (groups["Acme"].total, groups["Acme"].offers) == (2, 2)
    assert (groups["Acme "].total, groups["Acme "].rejected) == (3, 3)
    assert [(item.company, item.count) for item in analytics.top_companies] == [("Acme ", 3), ("Acme", 2)]


def test_half_up_rounding() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert percentage(1, 8) == 13
    assert percentage(1, 0) == 0


def test_version_performance_and_best_version() -> None:
    versions = [
        ResumeVersionSnapshot(id=1, resume_id=1, title="General", created_at=datetime(2024, 1, 1, tzinfo=UTC)),
        ResumeVersionSnapshot(id=2, resume_id=1, title="Backend", created_at=datetime(2024, 2, 1, tzinfo=UTC)),
        ResumeVersionSnapshot(id=3, resume_id=1, title="Unused", created_at=datetime(2024, 3, 1, tzinfo=UTC)),
    ]
    records = [
        _record("interview", version_id=2, hours=24),
        _record("applied", version_id=2),
        _record("rejected", version_id=1, hours=72),
        _record("applied", version_id=1),
        _record("offer", version_id=1, deleted=True),
    ]

    performances = compute_version_performance(records, versions)

    assert [item.version_id for item in performances] == [2, 1]
    backend, general = performances
    assert (backend.total, backend.response_rate, backend.interview_rate) == (2, 50.0, 50.0)
    assert (general.total, general.response_rate, general.interview_rate) == (2, 50.0, 0.0)
    assert backend.avg_response_hours == 24
    assert general.avg_response_hours == 72
    assert best_version(performances).version_id == 2
    assert best_version([]) is None
