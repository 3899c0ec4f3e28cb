"""Run-wide statistics snapshot."""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Literal


@dataclass(frozen=True, kw_only=True)
class AggregateStats:
    """Point-in-time or frozen copy of the aggregator's counters.

    ``failed`` counts every executed job that did not pass, ``errors`` and
    ``timeouts`` are the subsets of it with those statuses.
    """

    total: int
    executed: int
    passed: int
    failed: int
    skipped: int
    errors: int = 0
    timeouts: int = 0
    start_time: datetime
    end_time: datetime | None = None
    frozen: bool = False

    @property
    def duration_ms(self) -> int:
        """Wall-clock duration of the run so far, or of the whole run once frozen."""
        end = self.end_time or datetime.now(self.start_time.tzinfo)
        return max(0, int((end - self.start_time).total_seconds() * 1000))

    @property
    def success_rate(self) -> float | None:
        """Percentage of executed jobs that passed, None when nothing ran."""
        if self.executed == 0:
            return None
        return self.passed * 100 / self.executed

    @property
    def has_failures(self) -> bool:
        """Whether any executed job did not pass."""
        return self.failed > 0

    def as_dict(self) -> dict[str, Any]:
        """Serializable form of the snapshot."""
        data = asdict(self)
        data["start_time"] = self.start_time.isoformat()
        data["end_time"] = self.end_time.isoformat() if self.end_time else None
        data["duration_ms"] = self.duration_ms
        data["success_rate"] = self.success_rate
        return data

    def render(self, fmt: Literal["text", "json"] = "text") -> str:
        """Render the snapshot as a one-line summary or as JSON."""
        if fmt == "json":
            return json.dumps(self.as_dict(), indent=2)

        rate = self.success_rate
        rate_text = "N/A" if rate is None else f"{rate:.0f}%"
        return (
            f"total={self.total} executed={self.executed} passed={self.passed} "
            f"failed={self.failed} skipped={self.skipped} "
            f"success_rate={rate_text} duration={self.duration_ms}ms"
        )
