"""Tests for run statistics snapshots."""

import json
from datetime import UTC, datetime, timedelta

from gctf_runner.models.stats import AggregateStats

START = datetime(2026, 1, 1, tzinfo=UTC)


def _stats(**overrides: object) -> AggregateStats:
    values: dict[str, object] = {
        "total": 4,
        "executed": 3,
        "passed": 2,
        "failed": 1,
        "skipped": 1,
        "timeouts": 1,
        "start_time": START,
        "end_time": START + timedelta(milliseconds=1500),
        "frozen": True,
    }
    values.update(overrides)
    return AggregateStats(**values)  # type: ignore[arg-type]


def test_duration_and_success_rate() -> None:
    """Derived values come from the counters and timestamps."""
    stats = _stats()

    assert stats.duration_ms == 1500
    assert stats.success_rate is not None
    assert round(stats.success_rate) == 67
    assert stats.has_failures


def test_success_rate_is_undefined_without_executed_jobs() -> None:
    """Nothing executed means no success rate."""
    stats = _stats(executed=0, passed=0, failed=0, skipped=4, timeouts=0)

    assert stats.success_rate is None
    assert "success_rate=N/A" in stats.render()


def test_render_text_summary() -> None:
    """Text rendering is a single summary line."""
    assert _stats().render() == (
        "total=4 executed=3 passed=2 failed=1 skipped=1 "
        "success_rate=67% duration=1500ms"
    )


def test_render_json() -> None:
    """JSON rendering includes the derived values."""
    data = json.loads(_stats().render("json"))

    assert data["total"] == 4
    assert data["timeouts"] == 1
    assert data["duration_ms"] == 1500
    assert data["start_time"] == "2026-01-01T00:00:00+00:00"
    assert data["frozen"] is True
