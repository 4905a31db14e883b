import random
from datetime import UTC, datetime, timedelta, timezone

from jobfunnel.core.attribution import suggest
from jobfunnel.types import ApplicationSnapshot, ResumeVersionSnapshot


def _app(applied_at=None, created_at=datetime(2024, 1, 1, tzinfo=UTC)) -> ApplicationSnapshot:
    return ApplicationSnapshot(id=1, profile_id=1, applied_at=applied_at, created_at=created_at)


def _version(version_id: int, *ymd: int) -> ResumeVersionSnapshot:
    return ResumeVersionSnapshot(id=version_id, resume_id=1, created_at=datetime(*ymd, tzinfo=UTC))


def test_newest_version_before_submission_wins() -> None:
    versions = [_version(1, 2024, 1, 1), _version(2, 2024, 3, 1), _version(3, 2024, 5, 1)]
    assert suggest(_app(applied_at=datetime(2024, 4, 1, tzinfo=UTC)), versions) == 2


def test_falls_back_to_oldest_when_every_version_is_newer() -> None:
    versions = [_version(4, 2024, 6, 1), _version(2, 2024, 5, 1)]
    assert suggest(_app(applied_at=datetime(2024, 4, 1, tzinfo=UTC)), versions) == 2


def test_no_versions_means_no_suggestion() -> None:
    assert suggest(_app(), []) is None
    assert suggest(_app(), [ResumeVersionSnapshot(id=9, resume_id=1)]) is None


def test_created_at_is_used_before_submission() -> None:
    versions = [_version(1, 2023, 12, 1), _version(2, 2024, 2, 1)]
    assert suggest(_app(applied_at=None, created_at=datetime(2024, 1, 15, tzinfo=UTC)), versions) == 1


def test_version_created_on_the_reference_instant_counts() -> None:
    versions = [_version(1, 2024, 1, 1), _version(2, 2024, 4, 1)]
    assert suggest(_app(applied_at=datetime(2024, 4, 1, tzinfo=UTC)), versions) == 2


def test_same_timestamp_breaks_ties_by_id_in_any_order() -> None:
    versions = [_version(7, 2024, 2, 1), _version(3, 2024, 2, 1), _version(5, 2024, 1, 1)]
    application = _app(applied_at=datetime(2024, 3, 1, tzinfo=UTC))
    for _ in range(10):
        random.shuffle(versions)
        assert suggest(application, versions) == 7


def test_naive_and_offset_datetimes_compare_as_utc() -> None:
    plus_two = timezone(timedelta(hours=2))
    versions = [
        ResumeVersionSnapshot(id=1, resume_id=1, created_at=datetime(2024, 3, 1, 1, 0)),
        ResumeVersionSnapshot(id=2, resume_id=1, created_at=datetime(2024, 3, 1, 3, 0, tzinfo=plus_two)),
    ]
    # 03:00+02:00 is 01:00 UTC, the same instant as the naive stamp.
    application = _app(applied_at=datetime(2024, 3, 1, 1, 0, tzinfo=UTC))
    assert suggest(application, versions) == 2


def test_closest_prior_version_is_suggested() -> None:
    versions = [_version(1, 2024, 1, 1), _version(2, 2024, 1, 15), _version(3, 2024, 2, 1)]
    assert suggest(_app(applied_at=datetime(2024, 1, 20, tzinfo=UTC)), versions) == 2


def test_application_older_than_every_version_gets_the_oldest() -> None:
    versions = [_version(1, 2024, 1, 1), _version(2, 2024, 1, 15), _version(3, 2024, 2, 1)]
    assert suggest(_app(applied_at=datetime(2023, 12, 1, tzinfo=UTC)), versions) == 1
