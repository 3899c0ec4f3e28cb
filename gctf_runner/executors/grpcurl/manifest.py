"""grpcurl executor manifest."""

from gctf_runner.executors.grpcurl.config import GrpcurlConfig
from gctf_runner.executors.grpcurl.executor import GrpcurlExecutor
from gctf_runner.executors.manifest import ExecutorManifest

grpcurl_manifest = ExecutorManifest(
    config_cls=GrpcurlConfig,
    executor_factory=GrpcurlExecutor.from_config,
    description="Runs each call through the grpcurl binary",
)
