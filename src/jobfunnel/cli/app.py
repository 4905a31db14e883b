from __future__ import annotations

import json

import typer
import uvicorn

from jobfunnel.api.app import create_app
from jobfunnel.config import get_settings
from jobfunnel.core.attribution import ResumeAttributionResolver
from jobfunnel.core.reports import FunnelReporter
from jobfunnel.core.state_machine import ApplicationStateMachine
from jobfunnel.db.init import init_database
from jobfunnel.db.models import Application
from jobfunnel.db.repositories import Repository
from jobfunnel.db.session import SessionLocal
from jobfunnel.errors import JobFunnelError
from jobfunnel.logging_config import configure_logging

app = typer.Typer(help="JobFunnel CLI")
profile_app = typer.Typer(help="Manage seeker profiles and resume versions")
application_app = typer.Typer(help="Track applications through the funnel")
report_app = typer.Typer(help="Funnel analytics and recommendations")

app.add_typer(profile_app, name="profile")
app.add_typer(application_app, name="app")
app.add_typer(report_app, name="report")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _serialize_application(application: Application) -> dict:
    return {
        "id": application.id,
        "profile_id": application.profile_id,
        "job_title": application.job_title,
        "company": application.company,
        "status": application.status,
        "job_posting_id": application.job_posting_id,
        "applied_at": application.applied_at.isoformat() if application.applied_at else None,
        "created_at": application.created_at.isoformat() if application.created_at else None,
    }


@app.command("init")
def init_cmd() -> None:
    """Initialize database and data directories."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@profile_app.command("create")
def profile_create(
    name: str = typer.Option(..., "--name"),
    external_user_id: str = typer.Option("", "--external-user-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        profile = Repository(db).create_profile(name=name, external_user_id=external_user_id)
        typer.echo(json.dumps({"id": profile.id, "name": profile.name}, indent=2))


@profile_app.command("add-resume")
def profile_add_resume(
    profile_id: int = typer.Option(..., "--profile-id"),
    title: str = typer.Option("", "--title"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        if not repo.get_profile(profile_id):
            raise typer.BadParameter(f"profile {profile_id} not found")
        resume = repo.create_resume(profile_id, title=title)
        typer.echo(json.dumps({"id": resume.id, "title": resume.title}, indent=2))


@profile_app.command("add-version")
def profile_add_version(
    resume_id: int = typer.Option(..., "--resume-id"),
    title: str = typer.Option("", "--title"),
    tag: list[str] = typer.Option([], "--tag"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        if not repo.get_resume(resume_id):
            raise typer.BadParameter(f"resume {resume_id} not found")
        version = repo.create_resume_version(resume_id=resume_id, title=title, tags=tag)
        typer.echo(json.dumps({"id": version.id, "title": version.title, "tags": version.tags}, indent=2))


@application_app.command("add")
def application_add(
    profile_id: int = typer.Option(..., "--profile-id"),
    job_title: str = typer.Option(..., "--title"),
    company: str = typer.Option(..., "--company"),
    job_posting_id: int | None = typer.Option(None, "--job-posting-id"),
    notes: str | None = typer.Option(None, "--notes"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            application = ApplicationStateMachine(db).create(
                profile_id=profile_id,
                job_title=job_title,
                company=company,
                job_posting_id=job_posting_id,
                notes=notes,
            )
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps(_serialize_application(application), indent=2))


@application_app.command("list")
def application_list(
    profile_id: int = typer.Option(..., "--profile-id"),
    include_deleted: bool = typer.Option(False, "--include-deleted"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        rows = Repository(db).list_applications(profile_id, include_deleted=include_deleted)
        typer.echo(json.dumps([_serialize_application(row) for row in rows], indent=2))


@application_app.command("move")
def application_move(
    application_id: int = typer.Option(..., "--id"),
    status: str = typer.Option(..., "--status"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            application = ApplicationStateMachine(db).transition(application_id, status)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps(_serialize_application(application), indent=2))


@application_app.command("resend")
def application_resend(application_id: int = typer.Option(..., "--id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            application = ApplicationStateMachine(db).resend(application_id)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps(_serialize_application(application), indent=2))


@application_app.command("delete")
def application_delete(application_id: int = typer.Option(..., "--id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            ApplicationStateMachine(db).soft_delete(application_id)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps({"id": application_id, "deleted": True}, indent=2))


@application_app.command("suggest")
def application_suggest(application_id: int = typer.Option(..., "--id")) -> None:
    """Show the linked resume version, or the suggested one when nothing is linked."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            result = ResumeAttributionResolver(db).resolve(application_id)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps(result.model_dump(), indent=2))


@application_app.command("link")
def application_link(
    application_id: int = typer.Option(..., "--id"),
    version_id: int = typer.Option(..., "--version-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            metric = ResumeAttributionResolver(db).link(application_id, version_id)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(
            json.dumps(
                {"application_id": metric.application_id, "resume_version_id": metric.resume_version_id},
                indent=2,
            )
        )


@report_app.command("analytics")
def report_analytics(profile_id: int = typer.Option(..., "--profile-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            analytics = FunnelReporter(db).analytics(profile_id)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps(analytics.model_dump(mode="json"), indent=2))


@report_app.command("insights")
def report_insights(profile_id: int = typer.Option(..., "--profile-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            insights = FunnelReporter(db).insights(profile_id)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps([item.model_dump() for item in insights], indent=2))


@report_app.command("resumes")
def report_resumes(profile_id: int = typer.Option(..., "--profile-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            data = FunnelReporter(db).resume_performance(profile_id)
        except JobFunnelError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(json.dumps(data, indent=2))


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    configure_logging(log_level)
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(
        app_instance,
        host=host or settings.app_host,
        port=port or settings.app_port,
        log_level=(log_level or settings.log_level).lower(),
    )
