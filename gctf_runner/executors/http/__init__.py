"""HTTP executor module."""

from gctf_runner.executors.http.config import HttpConfig
from gctf_runner.executors.http.executor import HttpExecutor
from gctf_runner.executors.http.manifest import http_manifest

__all__ = ["HttpConfig", "HttpExecutor", "http_manifest"]
