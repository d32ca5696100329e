"""Audit commands: submit a site audit and inspect stored jobs."""

from __future__ import annotations

from typing import Optional

import typer

from siteaudit.errors import InvalidInput, NotFound, NotReady
from siteaudit.jobs import AuditJobManager, SqliteJobStore
from cli.rendering import render_report, render_status

audit_app = typer.Typer(help="Run and inspect site audits.", no_args_is_help=True)


def _manager() -> AuditJobManager:
    return AuditJobManager(store=SqliteJobStore())


@audit_app.command("run")
def audit_run(
    url: str = typer.Option(..., "--url", help="Root URL of the site to audit."),
    max_pages: Optional[int] = typer.Option(
        None, "--max-pages", help="Maximum pages to crawl (defaults to DEFAULT_MAX_PAGES)."
    ),
    no_images: bool = typer.Option(False, "--no-images", help="Skip image checks."),
    no_mobile: bool = typer.Option(False, "--no-mobile", help="Measure desktop only."),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", help="Parallel page fetches (defaults to DEFAULT_CONCURRENCY)."
    ),
) -> None:
    """Submit an audit, wait for it to finish, and print the report."""
    options = {
        "max_pages": max_pages,
        "include_images": not no_images,
        "check_mobile": not no_mobile,
        "concurrency": concurrency,
    }
    with _manager() as manager:
        try:
            job_id = manager.submit_audit(url, options)
        except InvalidInput as exc:
            typer.echo(f"[audit run] {exc}", err=True)
            raise typer.Exit(1)

        typer.echo(f"[audit run] Audit {job_id} started for {url!r} …")
        status = manager.wait(job_id)
        typer.echo(render_status(status))

        try:
            report = manager.get_job_results(job_id)
        except NotReady as exc:
            typer.echo(f"[audit run] {exc}", err=True)
            raise typer.Exit(1)

    typer.echo("\n" + "=" * 72)
    typer.echo(render_report(report))
    typer.echo("=" * 72)


@audit_app.command("status")
def audit_status(job_id: str = typer.Argument(..., help="Audit job id.")) -> None:
    """Print the stored status of an audit."""
    with _manager() as manager:
        try:
            status = manager.get_job_status(job_id)
        except NotFound as exc:
            typer.echo(f"[audit status] {exc}", err=True)
            raise typer.Exit(1)
    typer.echo(render_status(status))


@audit_app.command("results")
def audit_results(job_id: str = typer.Argument(..., help="Audit job id.")) -> None:
    """Print the report of a finished audit."""
    with _manager() as manager:
        try:
            report = manager.get_job_results(job_id)
        except (NotFound, NotReady) as exc:
            typer.echo(f"[audit results] {exc}", err=True)
            raise typer.Exit(1)
    typer.echo(render_report(report))
