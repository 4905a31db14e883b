import threading

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from jobfunnel.config import Settings
from jobfunnel.core.attribution import ResumeAttributionResolver
from jobfunnel.core.metrics import MetricsRecorder
from jobfunnel.core.state_machine import ApplicationStateMachine
from jobfunnel.db.models import ApplicationEvent, ApplicationMetric, Profile
from jobfunnel.db.repositories import Repository, atomic
from jobfunnel.db.session import SessionLocal
from jobfunnel.errors import ConcurrencyConflict


def _applied_application(db, clock) -> int:
    profile = Repository(db).create_profile(name="Seeker")
    machine = ApplicationStateMachine(db, clock=clock)
    application = machine.create(profile_id=profile.id, job_title="Data Engineer", company="Umbrella")
    clock.set(2024, 4, 1)
    machine.transition(application.id, "applied")
    return application.id


def test_stale_writer_retries_and_keeps_first_latency(clock) -> None:
    with SessionLocal() as first, SessionLocal() as second:
        application_id = _applied_application(first, clock)

        # Load both rows into the second session before the first one moves on.
        stale_repo = Repository(second)
        assert stale_repo.get_application(application_id).status == "applied"
        assert stale_repo.get_metric(application_id).interview_granted is False

        clock.set(2024, 4, 3)
        ApplicationStateMachine(first, clock=clock).transition(application_id, "interview")

        clock.set(2024, 4, 10)
        updated = ApplicationStateMachine(second, clock=clock).transition(application_id, "rejected")

        metric = stale_repo.get_metric(application_id)
        assert updated.status == "rejected"
        assert metric.response_received is True
        assert metric.interview_granted is True
        assert metric.time_to_response_hours == 48


def test_stale_writer_without_retries_surfaces_conflict(clock) -> None:
    with SessionLocal() as first, SessionLocal() as second:
        application_id = _applied_application(first, clock)
        Repository(second).get_application(application_id)

        clock.set(2024, 4, 2)
        ApplicationStateMachine(first, clock=clock).transition(application_id, "interview")

        machine = ApplicationStateMachine(second, settings=Settings(transition_max_retries=1), clock=clock)
        with pytest.raises(ConcurrencyConflict):
            machine.transition(application_id, "offer")

        assert Repository(first).get_application(application_id).status == "interview"


def test_stale_metric_write_is_a_conflict(clock) -> None:
    with SessionLocal() as first, SessionLocal() as second:
        application_id = _applied_application(first, clock)
        Repository(second).get_metric(application_id)

        MetricsRecorder(first).apply_funnel_event(application_id, response_received=True, elapsed_hours=5)

        with pytest.raises(ConcurrencyConflict):
            MetricsRecorder(second).apply_funnel_event(application_id, interview_granted=True, elapsed_hours=9)

        metric = Repository(second).get_metric(application_id)
        assert metric.response_received is True
        assert metric.interview_granted is False
        assert metric.time_to_response_hours == 5


def _run_together(workers: int, work) -> list:
    barrier = threading.Barrier(workers)
    results: list = []
    errors: list[Exception] = []

    def runner() -> None:
        barrier.wait()
        try:
            results.append(work())
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=runner) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    return results


def _metric_rows(db, application_id: int) -> int:
    statement = select(func.count()).select_from(ApplicationMetric).where(
        ApplicationMetric.application_id == application_id
    )
    return db.scalar(statement)


def test_concurrent_links_create_one_metric(clock) -> None:
    settings = Settings(transition_max_retries=5)
    with SessionLocal() as db:
        repo = Repository(db)
        profile = repo.create_profile(name="Seeker")
        resume = repo.create_resume(profile.id, "Main")
        version_id = repo.create_resume_version(resume_id=resume.id, title="v1").id
        machine = ApplicationStateMachine(db, clock=clock)
        application_ids = [
            machine.create(profile_id=profile.id, job_title="Engineer", company=f"Co {n}").id for n in range(5)
        ]

    for application_id in application_ids:

        def link() -> tuple[int, int | None]:
            with SessionLocal() as session:
                metric = ResumeAttributionResolver(session, settings=settings).link(application_id, version_id)
                return metric.id, metric.resume_version_id

        results = _run_together(4, link)

        assert len({metric_id for metric_id, _ in results}) == 1
        assert {linked for _, linked in results} == {version_id}
        with SessionLocal() as db:
            assert _metric_rows(db, application_id) == 1
            events = db.scalars(
                select(ApplicationEvent).where(ApplicationEvent.application_id == application_id)
            ).all()
            assert [event.event_type for event in events] == ["resume_linked"] * 4


def test_concurrent_ensure_returns_the_same_metric(clock) -> None:
    settings = Settings(transition_max_retries=5)
    with SessionLocal() as db:
        profile = Repository(db).create_profile(name="Seeker")
        machine = ApplicationStateMachine(db, clock=clock)
        application_ids = [
            machine.create(profile_id=profile.id, job_title="Engineer", company=f"Co {n}").id for n in range(5)
        ]

    for application_id in application_ids:

        def ensure() -> int:
            with SessionLocal() as session:
                return MetricsRecorder(session, settings=settings).ensure(application_id).id

        results = _run_together(4, ensure)

        assert len(set(results)) == 1
        with SessionLocal() as db:
            assert _metric_rows(db, application_id) == 1


def test_ensure_that_loses_the_insert_race_returns_the_winner(clock, monkeypatch) -> None:
    with SessionLocal() as first, SessionLocal() as second:
        profile = Repository(first).create_profile(name="Seeker")
        application = ApplicationStateMachine(first, clock=clock).create(
            profile_id=profile.id, job_title="Engineer", company="Umbrella"
        )
        winner = MetricsRecorder(first).ensure(application.id)

        # The loser's first lookup ran before the winner committed.
        real_get_metric = Repository.get_metric
        lookups = []

        def stale_get_metric(self, application_id, *, for_update=False):
            lookups.append(application_id)
            if len(lookups) == 1:
                return None
            return real_get_metric(self, application_id, for_update=for_update)

        monkeypatch.setattr(Repository, "get_metric", stale_get_metric)

        metric = MetricsRecorder(second).ensure(application.id)

        assert metric.id == winner.id
        assert len(lookups) == 2
        assert _metric_rows(second, application.id) == 1


def test_ensure_without_retries_surfaces_the_lost_insert(clock, monkeypatch) -> None:
    with SessionLocal() as first, SessionLocal() as second:
        profile = Repository(first).create_profile(name="Seeker")
        application = ApplicationStateMachine(first, clock=clock).create(
            profile_id=profile.id, job_title="Engineer", company="Umbrella"
        )
        MetricsRecorder(first).ensure(application.id)
        monkeypatch.setattr(Repository, "get_metric", lambda self, application_id, *, for_update=False: None)

        recorder = MetricsRecorder(second, settings=Settings(transition_max_retries=1))
        with pytest.raises(ConcurrencyConflict):
            recorder.ensure(application.id)


def test_duplicate_metric_row_is_a_conflict(clock) -> None:
    with SessionLocal() as db:
        application_id = _applied_application(db, clock)

        with pytest.raises(ConcurrencyConflict):
            with atomic(db, application_id):
                db.add(ApplicationMetric(application_id=application_id))
                db.flush()

        assert _metric_rows(db, application_id) == 1


def test_other_integrity_errors_propagate(clock) -> None:
    with SessionLocal() as db:
        application_id = _applied_application(db, clock)

        with pytest.raises(IntegrityError):
            with atomic(db, application_id):
                db.add(Profile(name=None))
                db.flush()

        assert Repository(db).get_application(application_id).status == "applied"
