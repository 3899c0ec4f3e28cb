"""Run configuration."""

import os
from typing import Literal

from pydantic import Field, ValidationError

from gctf_runner.channel import DEFAULT_CAPACITY, DEFAULT_POLL_INTERVAL
from gctf_runner.errors import ConfigError
from gctf_runner.health import DEFAULT_HEALTH_TIMEOUT
from gctf_runner.models.base import Model
from gctf_runner.policy import RetryPolicy

ADDRESS_ENV_VAR = "GRPCTESTIFY_ADDRESS"
DEFAULT_ADDRESS = "localhost:4770"
DEFAULT_TIMEOUT = 30.0
BUDGET_SAFETY_FACTOR = 1.2

type SortMode = Literal["path", "name", "random"]


def default_address() -> str:
    """Address used by test files without an ADDRESS section."""
    return os.environ.get(ADDRESS_ENV_VAR) or DEFAULT_ADDRESS


class RunConfig(Model):
    """Settings shared by every job of a run; fixed before dispatch."""

    concurrency: int = Field(default=1, ge=1)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    fail_fast: bool = False
    dry_run: bool = False
    verbose: bool = False
    sort: SortMode = "path"
    seed: int | None = None
    address: str = Field(default_factory=default_address)
    health_timeout: float = Field(default=DEFAULT_HEALTH_TIMEOUT, gt=0)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    channel_capacity: int = Field(default=DEFAULT_CAPACITY, ge=1)
    budget_factor: float = Field(default=BUDGET_SAFETY_FACTOR, gt=0)

    def job_budget(self, timeout: float | None = None) -> float:
        """Longest time one job may take, retries and health checks included."""
        attempts = self.retry.count + 1
        per_attempt = (timeout or self.timeout) + (
            self.health_timeout if self.retry.enabled else 0
        )
        return per_attempt * attempts + self.retry.total_delay()

    def run_budget(self, total: int, timeout: float | None = None) -> float:
        """Global time budget of a run of ``total`` jobs.

        ``timeout`` is the longest call timeout of any job, when test files
        override the run timeout.
        """
        return total * self.job_budget(timeout) * self.budget_factor


def build_config(**values: object) -> RunConfig:
    """Validate settings into a RunConfig.

    Raises:
        ConfigError: If any value is invalid

    """
    try:
        return RunConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
