"""grpcurl executor module."""

from gctf_runner.executors.grpcurl.config import GrpcurlConfig
from gctf_runner.executors.grpcurl.executor import GrpcurlExecutor
from gctf_runner.executors.grpcurl.manifest import grpcurl_manifest

__all__ = ["GrpcurlConfig", "GrpcurlExecutor", "grpcurl_manifest"]
