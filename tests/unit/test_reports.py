"""Tests for report files."""

import json
import xml.etree.ElementTree as ET
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from gctf_runner.models.result import ExecutionResult, FailureKind
from gctf_runner.models.stats import AggregateStats
from gctf_runner.reports import ReportEmitter
from gctf_runner.testing.factories import ResultFactory

START = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture
def results() -> list[ExecutionResult]:
    """One result of each status."""
    return [
        ResultFactory.build(
            job_id="1:suite/ok.gctf",
            path="suite/ok.gctf",
            display_name="ok",
            status="passed",
            duration_ms=120,
        ),
        ResultFactory.build(
            job_id="2:suite/wrong.gctf",
            path="suite/wrong.gctf",
            display_name="wrong",
            status="failed",
            error_detail="Response mismatch\nExpected: 1\nActual: 2",
            failure_kind=FailureKind.ASSERTION_MISMATCH,
        ),
        ResultFactory.build(
            job_id="3:suite/slow.gctf",
            path="suite/slow.gctf",
            display_name="slow",
            status="timeout",
            error_detail="Call exceeded 1s",
            failure_kind=FailureKind.TIMEOUT,
            retries=2,
        ),
        ResultFactory.build(
            job_id="4:suite/bad.gctf",
            path="suite/bad.gctf",
            display_name="bad",
            status="error",
            error_detail="No ENDPOINT specified",
        ),
        ResultFactory.build(
            job_id="5:suite/later.gctf",
            path="suite/later.gctf",
            display_name="later",
            status="skipped",
            error_detail="Skipped by fail-fast",
        ),
    ]


@pytest.fixture
def stats() -> AggregateStats:
    """Frozen statistics matching the results fixture."""
    return AggregateStats(
        total=5,
        executed=4,
        passed=1,
        failed=3,
        skipped=1,
        errors=1,
        timeouts=1,
        start_time=START,
        end_time=START + timedelta(seconds=2),
        frozen=True,
    )


def test_emit_junit_report(
    tmp_path: Path, stats: AggregateStats, results: list[ExecutionResult]
) -> None:
    """JUnit reports count failures, errors and skips per test case."""
    path = ReportEmitter().emit(stats, results, "junit", tmp_path / "out/report.xml")

    root = ET.parse(path).getroot()
    suite = root.find("testsuite")
    assert suite is not None
    assert suite.attrib["tests"] == "5"
    assert suite.attrib["failures"] == "2"
    assert suite.attrib["errors"] == "1"
    assert suite.attrib["skipped"] == "1"
    assert suite.attrib["time"] == "2.000"

    cases = {case.attrib["name"]: case for case in suite.iter("testcase")}
    assert list(cases) == ["ok", "wrong", "slow", "bad", "later"]
    assert len(cases["ok"]) == 0
    assert cases["ok"].attrib["time"] == "0.120"
    assert cases["ok"].attrib["classname"] == "suite"

    failure = cases["wrong"].find("failure")
    assert failure is not None
    assert failure.attrib["message"] == "Response mismatch"
    assert failure.text == "Response mismatch\nExpected: 1\nActual: 2"

    timeout = cases["slow"].find("failure")
    assert timeout is not None
    assert timeout.attrib["type"] == "timeout"
    assert cases["bad"].find("error") is not None
    assert cases["later"].find("skipped") is not None


def test_emit_json_report(
    tmp_path: Path, stats: AggregateStats, results: list[ExecutionResult]
) -> None:
    """JSON reports hold the summary and every test."""
    path = ReportEmitter().emit(stats, results, "json", tmp_path / "report.json")

    document = json.loads(path.read_text())
    assert document["summary"]["total"] == 5
    assert document["summary"]["success_rate"] == 25.0
    assert [test["status"] for test in document["tests"]] == [
        "passed",
        "failed",
        "timeout",
        "error",
        "skipped",
    ]
    assert document["tests"][2]["failure_kind"] == "timeout"
    assert document["tests"][2]["retries"] == 2


def test_emit_rejects_unknown_format(
    tmp_path: Path, stats: AggregateStats, results: list[ExecutionResult]
) -> None:
    """Only junit and json are supported."""
    with pytest.raises(ValueError, match="Unknown report format"):
        ReportEmitter().emit(stats, results, "html", tmp_path / "r")  # type: ignore[arg-type]
