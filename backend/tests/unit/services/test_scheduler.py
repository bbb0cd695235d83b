"""
Unit tests for the background job scheduler.

WHAT: Starting, inspecting and stopping the APScheduler instance that
runs the auto-close sweep.
"""

import pytest

from helpdesk.services import scheduler
from helpdesk.services.scheduler import (
    AUTO_CLOSE_JOB_ID,
    get_scheduler,
    get_scheduler_status,
    shutdown_scheduler,
    start_scheduler,
)


class TestScheduler:
    """Tests for scheduler lifecycle."""

    def test_status_before_start(self):
        assert get_scheduler() is None
        status = get_scheduler_status()

        assert status["running"] is False
        assert status["jobs"] == []

    @pytest.mark.asyncio
    async def test_start_registers_auto_close_job(self):
        await start_scheduler()
        try:
            status = get_scheduler_status()

            assert status["running"] is True
            assert [job["id"] for job in status["jobs"]] == [AUTO_CLOSE_JOB_ID]
            assert "interval" in status["jobs"][0]["trigger"]
        finally:
            await shutdown_scheduler()

        assert get_scheduler() is None

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_scheduler(self):
        await start_scheduler()
        try:
            first = get_scheduler()
            await start_scheduler()

            assert get_scheduler() is first
            assert len(first.get_jobs()) == 1
        finally:
            await shutdown_scheduler()

    @pytest.mark.asyncio
    async def test_shutdown_without_start(self):
        await shutdown_scheduler()

        assert scheduler._scheduler is None
