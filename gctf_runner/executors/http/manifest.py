"""HTTP executor manifest."""

from gctf_runner.executors.http.config import HttpConfig
from gctf_runner.executors.http.executor import HttpExecutor
from gctf_runner.executors.manifest import ExecutorManifest

http_manifest = ExecutorManifest(
    config_cls=HttpConfig,
    executor_factory=HttpExecutor.from_config,
    description="Posts JSON payloads to an HTTP gateway of the service",
)
