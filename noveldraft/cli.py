"""``flask novels`` commands for driving generation outside a request."""

from __future__ import annotations

import json
from datetime import timedelta

import click
from flask import Flask
from flask.cli import AppGroup

from .services import (
    JobNotFound,
    JobTerminated,
    StageFailure,
    StageOrderError,
    get_job_store,
    get_orchestrator,
    get_progress,
)

novels_cli = AppGroup("novels", help="Drive and inspect novel generation jobs.")


def _echo_progress(progress) -> None:
    click.echo(json.dumps(progress.to_dict(), indent=2))


@novels_cli.command("run")
@click.argument("job_id")
def run_job(job_id: str) -> None:
    """Generate JOB_ID to completion, one stage after another."""

    try:
        progress = get_orchestrator().run(job_id)
    except JobNotFound as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_progress(progress)
    if progress.status == "error":
        raise SystemExit(1)


@novels_cli.command("advance")
@click.argument("job_id")
def advance_job(job_id: str) -> None:
    """Run the next stage of JOB_ID."""

    orchestrator = get_orchestrator()
    try:
        result = orchestrator.advance(job_id)
    except JobNotFound as exc:
        raise click.ClickException(str(exc)) from exc
    except StageOrderError as exc:
        raise click.ClickException(str(exc)) from exc
    except (JobTerminated, StageFailure) as exc:
        click.echo(f"Stopped: {exc}", err=True)
        _echo_progress(get_progress(orchestrator.store, job_id))
        raise SystemExit(1)
    _echo_progress(result.progress)


@novels_cli.command("progress")
@click.argument("job_id")
def show_progress(job_id: str) -> None:
    """Print the progress of JOB_ID."""

    _echo_progress(get_progress(get_job_store(), job_id))


@novels_cli.command("sweep")
@click.option("--minutes", type=int, default=None, help="Idle time before a job counts as stale.")
def sweep(minutes: int | None) -> None:
    """Mark long-idle jobs as failed."""

    max_idle = timedelta(minutes=minutes) if minutes else None
    swept = get_orchestrator().sweep_stale(max_idle)
    click.echo(f"Marked {len(swept)} stale job(s) as error.")
    for job_id in swept:
        click.echo(f"  {job_id}")


def register_cli(app: Flask) -> None:
    app.cli.add_command(novels_cli)
