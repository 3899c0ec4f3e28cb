"""Report files written from the frozen run statistics."""

import json
import logging
import socket
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from gctf_runner.models.result import ExecutionResult
from gctf_runner.models.stats import AggregateStats

log = logging.getLogger(__name__)

type ReportFormat = Literal["junit", "json"]

REPORT_FORMATS: tuple[ReportFormat, ...] = ("junit", "json")
SUITE_NAME = "gctf-runner"


class ReportEmitter:
    """Writes a finished run as a JUnit XML or JSON report."""

    def emit(
        self,
        stats: AggregateStats,
        results: Sequence[ExecutionResult],
        fmt: ReportFormat,
        path: Path,
    ) -> Path:
        """Write the report and return its path.

        Raises:
            ValueError: If the format is unknown

        """
        match fmt:
            case "junit":
                content = render_junit(stats, results)
            case "json":
                content = render_json(stats, results)
            case _:
                raise ValueError(
                    f"Unknown report format '{fmt}', expected one of {REPORT_FORMATS}"
                )

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        log.info("Wrote %s report to %s", fmt, path)
        return path


def _seconds(duration_ms: int) -> str:
    return f"{duration_ms / 1000:.3f}"


def render_junit(stats: AggregateStats, results: Sequence[ExecutionResult]) -> str:
    """Render results as JUnit XML.

    Timeouts are reported as failures of type ``timeout``; errors get an
    ``<error>`` element.
    """
    failures = stats.failed - stats.errors
    timestamp = (stats.end_time or datetime.now(UTC)).isoformat()
    counts = {
        "tests": str(stats.total),
        "failures": str(failures),
        "errors": str(stats.errors),
        "skipped": str(stats.skipped),
        "time": _seconds(stats.duration_ms),
    }

    root = ET.Element("testsuites", name=SUITE_NAME, **counts)
    suite = ET.SubElement(
        root, "testsuite", name=SUITE_NAME, timestamp=timestamp, **counts
    )
    properties = ET.SubElement(suite, "properties")
    ET.SubElement(properties, "property", name="hostname", value=socket.gethostname())
    ET.SubElement(properties, "property", name="timestamp", value=timestamp)

    for result in results:
        case = ET.SubElement(
            suite,
            "testcase",
            name=result.display_name,
            classname=_classname(result.path),
            file=result.path,
            time=_seconds(result.duration_ms),
        )
        message = result.error_detail or ""
        match result.status:
            case "failed":
                failure = ET.SubElement(
                    case, "failure", message=_first_line(message), type="failure"
                )
                failure.text = message
            case "timeout":
                failure = ET.SubElement(
                    case, "failure", message=_first_line(message), type="timeout"
                )
                failure.text = message
            case "error":
                error = ET.SubElement(
                    case, "error", message=_first_line(message), type="error"
                )
                error.text = message
            case "skipped":
                ET.SubElement(case, "skipped", message=message)

    ET.indent(root)
    body = ET.tostring(root, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def _classname(path: str) -> str:
    parts = [p for p in Path(path).parent.parts if p not in {"/", "."}]
    return ".".join(parts) or SUITE_NAME


def _first_line(text: str) -> str:
    return text.splitlines()[0] if text else ""


def render_json(stats: AggregateStats, results: Sequence[ExecutionResult]) -> str:
    """Render the summary and every result as a JSON document."""
    document = {
        "summary": stats.as_dict(),
        "tests": [result_to_dict(result) for result in results],
    }
    return json.dumps(document, indent=2) + "\n"


def result_to_dict(result: ExecutionResult) -> dict[str, Any]:
    """Serializable form of one result."""
    return {
        "id": result.job_id,
        "name": result.display_name,
        "path": result.path,
        "status": result.status,
        "duration_ms": result.duration_ms,
        "started_at": result.started_at.isoformat(),
        "finished_at": result.finished_at.isoformat(),
        "error": result.error_detail,
        "failure_kind": result.failure_kind.value if result.failure_kind else None,
        "retries": result.retries,
    }
