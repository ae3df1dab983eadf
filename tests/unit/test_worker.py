"""Unit tests for the leaderboard refresh worker settings."""

from __future__ import annotations

from brainbattle.leaderboard.worker import WorkerSettings, refresh_leaderboard, refresh_minutes


class TestRefreshSchedule:
    def test_five_minute_interval(self):
        assert refresh_minutes(300) == {0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}

    def test_sub_minute_interval_runs_every_minute(self):
        assert refresh_minutes(30) == set(range(60))

    def test_hourly_interval(self):
        assert refresh_minutes(3600) == {0}

    def test_worker_registers_refresh_job(self):
        assert refresh_leaderboard in WorkerSettings.functions
        assert len(WorkerSettings.cron_jobs) == 1
