"""Cron schedules and the ``almanac-jobs`` command line.

The deployment's cron infrastructure (a Kubernetes ``CronJob``, systemd timer
or plain crontab) invokes ``almanac-jobs enqueue <cadence>`` and
``almanac-jobs reap --enqueue`` on the schedules below; Dramatiq workers do
the rest.

Usage:
    almanac-jobs schedule              # Print the crontab
    almanac-jobs enqueue weekly        # Queue a weekly sweep
    almanac-jobs run monthly           # Run a monthly sweep in-process
    almanac-jobs reap                  # Fail stuck reports in-process
    almanac-jobs init-db               # Create missing tables

Environment variables:
    ALMANAC_DATABASE_URL - SQLAlchemy URL of the report database
    ALMANAC_LOG_LEVEL    - Log level (default: INFO)
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import json
import os
import typing as typ

from cyclopts import App, Parameter

from almanac.logging import configure_logging
from almanac.periods import Cadence, as_cadence

app = App(
    name="almanac-jobs",
    help="Scheduled life report jobs for Almanac",
    version="0.1.0",
)


@dc.dataclass(frozen=True, slots=True)
class JobSchedule:
    """One cron-triggered job.

    Attributes
    ----------
    name
        Stable job name, usable as a CronJob name.
    cron
        Five-field cron expression, evaluated in UTC.
    command
        ``almanac-jobs`` arguments the trigger runs.
    timeout
        Invocation time limit for the triggered sweep.
    cadence
        Cadence swept by the job, or ``None`` for the reaper.

    """

    name: str
    cron: str
    command: tuple[str, ...]
    timeout: dt.timedelta
    cadence: Cadence | None = None


_SWEEP_TIMEOUT = dt.timedelta(seconds=300)
_REAP_TIMEOUT = dt.timedelta(seconds=60)

SCHEDULES: tuple[JobSchedule, ...] = (
    JobSchedule(
        "weekly-reports",
        "0 9 * * 1",
        ("enqueue", "weekly"),
        _SWEEP_TIMEOUT,
        Cadence.WEEKLY,
    ),
    JobSchedule(
        "monthly-reports",
        "0 6 1 * *",
        ("enqueue", "monthly"),
        _SWEEP_TIMEOUT,
        Cadence.MONTHLY,
    ),
    JobSchedule(
        "quarterly-reports",
        "0 6 1 1,4,7,10 *",
        ("enqueue", "quarterly"),
        _SWEEP_TIMEOUT,
        Cadence.QUARTERLY,
    ),
    JobSchedule(
        "annual-reports",
        "0 0 2 1 *",
        ("enqueue", "annual"),
        _SWEEP_TIMEOUT,
        Cadence.ANNUAL,
    ),
    JobSchedule(
        "reap-stuck-reports",
        "*/15 * * * *",
        ("reap", "--enqueue"),
        _REAP_TIMEOUT,
    ),
)


def schedule_for(cadence: Cadence | str) -> JobSchedule:
    """Return the schedule that sweeps ``cadence``."""
    resolved = as_cadence(cadence)
    return next(job for job in SCHEDULES if job.cadence is resolved)


def render_crontab(schedules: typ.Iterable[JobSchedule] = SCHEDULES) -> str:
    """Render ``schedules`` as crontab lines."""
    return "\n".join(
        f"{job.cron}\talmanac-jobs {' '.join(job.command)}\t# {job.name}"
        for job in schedules
    )


DatabaseUrl = typ.Annotated[str, Parameter(env_var="ALMANAC_DATABASE_URL")]


@app.command
def schedule() -> int:
    """Print the crontab for every scheduled job."""
    print(render_crontab())
    return 0


@app.command
def enqueue(
    cadence: str,
    *,
    database_url: DatabaseUrl,
    as_of: str | None = None,
) -> int:
    """Queue a cadence sweep on the Dramatiq broker.

    Args:
        cadence: Cadence to sweep (weekly, monthly, quarterly, annual).
        database_url: SQLAlchemy URL of the report database.
        as_of: Optional ISO timestamp with offset the period is computed from.

    Returns:
        Exit code (0 for success).

    """
    from almanac.reporting.actor import run_cadence_job

    as_cadence(cadence)
    message = run_cadence_job.send(database_url, cadence, as_of_iso=as_of)
    print(f"Queued {cadence} sweep as message {message.message_id}")
    return 0


@app.command
def run(
    cadence: str,
    *,
    database_url: DatabaseUrl,
    as_of: str | None = None,
) -> int:
    """Run a cadence sweep in this process and print its summary.

    Args:
        cadence: Cadence to sweep (weekly, monthly, quarterly, annual).
        database_url: SQLAlchemy URL of the report database.
        as_of: Optional ISO timestamp with offset the period is computed from.

    Returns:
        Exit code (0 when no user failed, 1 otherwise).

    """
    from almanac.reporting.actor import run_cadence_job

    summary = run_cadence_job(database_url, cadence, as_of_iso=as_of)
    print(json.dumps(summary, sort_keys=True))
    return 1 if summary["failed"] or summary["timed_out"] else 0


@app.command
def reap(
    *,
    database_url: DatabaseUrl,
    now: str | None = None,
    enqueue: bool = False,
) -> int:
    """Fail reports stuck in ``generating``.

    Args:
        database_url: SQLAlchemy URL of the report database.
        now: Optional ISO observation timestamp with offset.
        enqueue: Queue the sweep on the broker instead of running it here.

    Returns:
        Exit code (0 for success).

    """
    from almanac.reporting.actor import reap_stuck_reports_job

    if enqueue:
        message = reap_stuck_reports_job.send(database_url, now_iso=now)
        print(f"Queued stuck-report sweep as message {message.message_id}")
        return 0
    summary = reap_stuck_reports_job(database_url, now_iso=now)
    print(json.dumps(summary, sort_keys=True))
    return 0


@app.command(name="init-db")
def init_db(*, database_url: DatabaseUrl) -> int:
    """Create any missing Almanac tables.

    Args:
        database_url: SQLAlchemy URL of the report database.

    Returns:
        Exit code (0 for success).

    """
    from sqlalchemy.ext.asyncio import create_async_engine

    from almanac.storage import init_storage

    async def create() -> None:
        engine = create_async_engine(database_url)
        try:
            await init_storage(engine)
        finally:
            await engine.dispose()

    asyncio.run(create())
    print("Almanac tables are up to date.")
    return 0


def main() -> int:
    """Entry point for the ``almanac-jobs`` console script."""
    configure_logging(os.environ.get("ALMANAC_LOG_LEVEL", "INFO"))
    return app()


__all__ = [
    "SCHEDULES",
    "JobSchedule",
    "app",
    "main",
    "render_crontab",
    "schedule_for",
]
