"""Unit tests for the almanac-jobs command line and cron schedules."""

from __future__ import annotations

import json

import dramatiq
import pytest

from almanac.periods import Cadence
from almanac.reporting import schedules
from almanac.reporting.schedules import SCHEDULES, app, render_crontab, schedule_for


class TestSchedules:
    """Tests for the cron schedule table."""

    @pytest.mark.parametrize(
        ("cadence", "cron"),
        [
            (Cadence.WEEKLY, "0 9 * * 1"),
            (Cadence.MONTHLY, "0 6 1 * *"),
            (Cadence.QUARTERLY, "0 6 1 1,4,7,10 *"),
            (Cadence.ANNUAL, "0 0 2 1 *"),
        ],
    )
    def test_cadence_schedules(self, cadence: Cadence, cron: str) -> None:
        """Each cadence is swept on its own trigger."""
        job = schedule_for(cadence)

        assert job.cron == cron
        assert job.command == ("enqueue", cadence.value)
        assert job.timeout.total_seconds() == 300

    def test_reaper_runs_every_fifteen_minutes(self) -> None:
        """The reaper has the shortest schedule and timeout."""
        (reaper,) = [job for job in SCHEDULES if job.cadence is None]

        assert reaper.cron == "*/15 * * * *"
        assert reaper.command == ("reap", "--enqueue")
        assert reaper.timeout.total_seconds() == 60

    def test_render_crontab(self) -> None:
        """Crontab output has one line per job."""
        lines = render_crontab().splitlines()

        assert len(lines) == len(SCHEDULES)
        assert lines[0] == "0 9 * * 1\talmanac-jobs enqueue weekly\t# weekly-reports"


class TestCliStructure:
    """Tests for CLI structure and subcommands."""

    def test_app_has_name(self) -> None:
        """App should have the correct name."""
        # Cyclopts returns name as a tuple
        assert app.name == ("almanac-jobs",)

    def test_app_has_version(self) -> None:
        """App should have a version."""
        assert app.version == "0.1.0"

    @pytest.mark.parametrize(
        "command", ["schedule", "enqueue", "run", "reap", "init-db"]
    )
    def test_app_has_command(self, command: str) -> None:
        """Every job command is registered."""
        assert app[command] is not None


class TestCommands:
    """Tests that call the command functions directly."""

    def test_schedule_prints_crontab(self, capsys: pytest.CaptureFixture[str]) -> None:
        """The schedule command prints the crontab."""
        assert schedules.schedule() == 0
        assert capsys.readouterr().out.strip() == render_crontab()

    def test_init_db_then_run(
        self,
        database_url: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """A fresh database can be initialised and swept in-process."""
        assert schedules.init_db(database_url=database_url) == 0
        capsys.readouterr()

        code = schedules.run(
            "weekly",
            database_url=database_url,
            as_of="2026-01-14T09:00:00+00:00",
        )

        summary = json.loads(capsys.readouterr().out)
        assert code == 0
        assert summary["report_id"] == "weekly-2026-01-05"
        assert summary["users_seen"] == 0

    def test_reap_in_process(
        self, database_url: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """The reap command prints its counts."""
        schedules.init_db(database_url=database_url)
        capsys.readouterr()

        assert schedules.reap(database_url=database_url) == 0
        assert json.loads(capsys.readouterr().out) == {"retried": 0, "failed": 0}

    def test_enqueue_validates_cadence(self, database_url: str) -> None:
        """Unknown cadences are rejected before anything is queued."""
        broker = dramatiq.get_broker()
        broker.flush_all()

        with pytest.raises(ValueError, match="Unknown cadence"):
            schedules.enqueue("hourly", database_url=database_url)
        assert schedules.enqueue("annual", database_url=database_url) == 0
        assert sum(queue.qsize() for queue in broker.queues.values()) == 1
        broker.flush_all()
