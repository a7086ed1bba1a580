"""Tests for PeriodicStatsLogger."""

import asyncio
from unittest.mock import patch

import pytest

from core.logging.periodic_logger import PeriodicStatsLogger


def _make_stats_callback(records_forwarded=0, produce_errors=0, fetch_errors=0, batches=0):
    """Return a stats callback that returns fixed values."""
    def get_stats():
        return {
            "records_forwarded": records_forwarded,
            "produce_errors": produce_errors,
            "fetch_errors": fetch_errors,
            "batches": batches,
        }
    return get_stats


class TestPeriodicStatsLoggerInit:

    def test_stores_configuration(self):
        callback = _make_stats_callback()
        psl = PeriodicStatsLogger(interval_seconds=30, get_stats=callback, stage="mirror")

        assert psl.interval_seconds == 30
        assert psl.get_stats is callback
        assert psl.stage == "mirror"
        assert psl._task is None
        assert psl._cycle_count == 0


class TestLogCycle:

    def test_initial_cycle_has_no_delta(self):
        psl = PeriodicStatsLogger(30, _make_stats_callback(records_forwarded=10), "mirror")

        with patch("core.logging.periodic_logger.logger") as mock_logger:
            psl.log_cycle()

        msg = mock_logger.info.call_args[0][0]
        assert msg == "Cycle 0: total: 10 forwarded"
        assert psl._cycle_count == 1

    def test_subsequent_cycle_reports_delta_and_rate(self):
        counters = {"records_forwarded": 100, "produce_errors": 0, "fetch_errors": 0, "batches": 1}
        psl = PeriodicStatsLogger(10, lambda: dict(counters), "mirror")

        with patch("core.logging.periodic_logger.logger") as mock_logger:
            psl.log_cycle()
            counters["records_forwarded"] = 350
            psl.log_cycle()

        args, kwargs = mock_logger.info.call_args
        assert args[0].startswith("Cycle 1: +250 this cycle")
        assert "25.0 msg/s" in args[0]
        assert kwargs["extra"]["rate_msg_per_sec"] == 25.0
        assert kwargs["extra"]["records_forwarded"] == 350
        assert kwargs["extra"]["stage"] == "mirror"

    def test_error_counts_appear_in_message(self):
        psl = PeriodicStatsLogger(
            30, _make_stats_callback(records_forwarded=5, produce_errors=2, fetch_errors=1), "mirror"
        )

        with patch("core.logging.periodic_logger.logger") as mock_logger:
            psl.log_cycle()

        msg = mock_logger.info.call_args[0][0]
        assert "2 produce errors" in msg
        assert "1 fetch errors" in msg


class TestPeriodicStatsLoggerLifecycle:

    async def test_start_creates_task_and_logs_initial_cycle(self):
        psl = PeriodicStatsLogger(60, _make_stats_callback(), "mirror")

        with patch("core.logging.periodic_logger.logger") as mock_logger:
            psl.start()
            assert psl._task is not None
            await asyncio.sleep(0.05)
            await psl.stop()

        first_msg = mock_logger.info.call_args_list[0][0][0]
        assert first_msg.startswith("Cycle 0:")
        assert psl._task is None

    async def test_start_twice_warns(self):
        psl = PeriodicStatsLogger(60, _make_stats_callback(), "mirror")

        with patch("core.logging.periodic_logger.logger") as mock_logger:
            psl.start()
            task = psl._task
            psl.start()
            assert psl._task is task
            mock_logger.warning.assert_called_once()
            await psl.stop()

    async def test_logs_repeatedly_at_interval(self):
        psl = PeriodicStatsLogger(0.01, _make_stats_callback(), "mirror")

        with patch("core.logging.periodic_logger.logger") as mock_logger:
            psl.start()
            await asyncio.sleep(0.1)
            await psl.stop()

        assert mock_logger.info.call_count >= 2

    @pytest.mark.asyncio
    async def test_stop_does_nothing_when_not_running(self):
        psl = PeriodicStatsLogger(30, _make_stats_callback(), "mirror")

        await psl.stop()
        assert psl._task is None
