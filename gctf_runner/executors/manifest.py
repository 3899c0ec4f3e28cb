"""Executor plugins as seen by the CLI."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel, ValidationError

from gctf_runner.errors import ConfigError
from gctf_runner.executors.base import TestExecutor


@dataclass(frozen=True, kw_only=True)
class ExecutorManifest[ConfigT: BaseModel]:
    """How to configure and open one kind of executor.

    Entry points of the ``gctf_runner.executors`` group resolve to manifests,
    so an executor module is only imported once its key is selected.
    """

    config_cls: type[ConfigT]
    executor_factory: Callable[[ConfigT], AbstractAsyncContextManager[TestExecutor]]
    description: str = ""

    def parse_config(self, raw: str) -> ConfigT:
        """Validate executor settings given as a JSON object.

        Raises:
            ConfigError: If ``raw`` is not a JSON object accepted by ``config_cls``

        """
        try:
            return self.config_cls.model_validate_json(raw or "{}")
        except ValidationError as e:
            raise ConfigError(f"Invalid executor configuration: {e}") from e
