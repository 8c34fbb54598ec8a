"""Tests for the throttled error logger."""

from __future__ import annotations

import logging

import pytest

from dashboard.core.errors import UpstreamError
from dashboard.core.log import ThrottledLogger
from dashboard.drivers.upstream import RetryPolicy, UpstreamClient


def test_one_record_per_interval(clock, caplog) -> None:
    log = ThrottledLogger(logging.getLogger("dashboard.test"), interval_s=300, clock=clock)

    with caplog.at_level(logging.ERROR, logger="dashboard.test"):
        assert log.error("upstream down") is True
        clock.advance(299)
        assert log.error("upstream down") is False
        clock.advance(2)
        assert log.error("upstream still down") is True

    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["upstream down", "upstream still down"]


def test_warnings_and_errors_are_gated_separately(clock, caplog) -> None:
    log = ThrottledLogger(logging.getLogger("dashboard.test"), interval_s=60, clock=clock)

    with caplog.at_level(logging.WARNING, logger="dashboard.test"):
        assert log.warning("rate limited") is True
        assert log.error("failed") is True
        assert log.warning("rate limited again") is False
        assert log.error("failed again") is False

    assert [r.levelno for r in caplog.records if r.name == "dashboard.test"] == [logging.WARNING, logging.ERROR]


@pytest.mark.asyncio
async def test_retry_warnings_leave_room_for_the_final_error(clock, caplog, upstream, sleeper) -> None:
    log = ThrottledLogger(logging.getLogger("dashboard.test"), interval_s=300, clock=clock)
    upstream.on("GET", "/data", (409, {"error": "busy"}))
    client = UpstreamClient(
        "Test", base_url="https://api.test", retry=RetryPolicy(retries=2),
        transport=upstream.transport, sleep=sleeper, error_log=log,
    )

    with caplog.at_level(logging.WARNING, logger="dashboard.test"):
        with pytest.raises(UpstreamError) as excinfo:
            await client.get_json("/data")
        assert log.error("Test fetch failed: %s", excinfo.value) is True

    levels = [r.levelno for r in caplog.records if r.name == "dashboard.test"]
    assert levels == [logging.WARNING, logging.ERROR]
