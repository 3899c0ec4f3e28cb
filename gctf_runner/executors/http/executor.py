"""Executor that sends calls as JSON over HTTP."""

import json
import logging
import ssl
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

import aiohttp

from gctf_runner.errors import (
    CallTimeoutError,
    ProtocolError,
    ServiceUnavailableError,
)
from gctf_runner.executors.base import CallOutcome, GrpcCall, TestExecutor
from gctf_runner.executors.http.config import HttpConfig

log = logging.getLogger(__name__)


def parse_headers(lines: Sequence[str]) -> Mapping[str, str]:
    """Parse ``name: value`` header lines."""
    headers: dict[str, str] = {}
    for line in lines:
        name, sep, value = line.partition(":")
        if not sep:
            raise ProtocolError(f"Malformed header '{line}'")
        headers[name.strip()] = value.strip()
    return headers


@dataclass(frozen=True, kw_only=True)
class HttpExecutor(TestExecutor):
    """Posts the request payload to the endpoint and returns the body.

    Non-2xx answers are returned with the HTTP status so the ERROR section can
    match them. The call is bounded by aiohttp's own total timeout.
    """

    enforces_timeout: ClassVar[bool] = True

    config: HttpConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: HttpConfig
    ) -> AsyncGenerator["HttpExecutor", None]:
        """Create executor with managed session lifecycle."""
        async with aiohttp.ClientSession(
            headers={"Content-Type": "application/json"},
        ) as session:
            yield cls(config=config, session=session)

    def url_for(self, call: GrpcCall) -> str:
        """URL the call is sent to."""
        scheme = "https" if call.tls is not None else self.config.scheme
        base_path = self.config.base_path.rstrip("/")
        return f"{scheme}://{call.address}{base_path}/{call.endpoint.lstrip('/')}"

    def ssl_context(self, call: GrpcCall) -> ssl.SSLContext | bool:
        """TLS settings for aiohttp derived from the TLS section."""
        if call.tls is None:
            return True
        if call.tls.insecure:
            return False
        context = ssl.create_default_context(
            cafile=call.resolve_path(call.tls.ca_cert) if call.tls.ca_cert else None
        )
        if call.tls.cert:
            context.load_cert_chain(
                call.resolve_path(call.tls.cert),
                call.resolve_path(call.tls.key) if call.tls.key else None,
            )
        return context

    def describe(self, call: GrpcCall) -> str:
        """Method and URL of the call."""
        return f"{self.config.method} {self.url_for(call)}"

    async def execute(
        self, call: GrpcCall, *, timeout: float, workspace: Path
    ) -> CallOutcome:
        """Send the call and return the response body."""
        url = self.url_for(call)
        data = call.payload.encode() if call.payload is not None else None
        if data is not None:
            try:
                json.loads(data)
            except json.JSONDecodeError as e:
                raise ProtocolError(f"Request payload is not JSON: {e}") from e

        log.debug("%s %s", self.config.method, url)
        try:
            async with self.session.request(
                self.config.method,
                url,
                data=data,
                headers=parse_headers(call.headers),
                timeout=aiohttp.ClientTimeout(total=timeout),
                ssl=self.ssl_context(call),
            ) as response:
                text = await response.text()
        except TimeoutError as e:
            raise CallTimeoutError(f"HTTP call exceeded {timeout:g}s") from e
        except aiohttp.ClientConnectionError as e:
            raise ServiceUnavailableError(f"Cannot reach {url}: {e}") from e
        except aiohttp.ClientError as e:
            raise ProtocolError(f"HTTP call to {url} failed: {e}") from e

        (workspace / "response.txt").write_text(text, encoding="utf-8")

        if 200 <= response.status < 300:
            return CallOutcome(response=text, status=0)
        return CallOutcome(response=text, status=response.status)
