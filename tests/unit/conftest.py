"""Shared fixtures for unit tests."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest


@pytest.fixture
def write_test_file(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing a .gctf file below tmp_path."""

    def write(
        name: str,
        endpoint: str = "example.Service/Method",
        response: str | None = '{"ok": true}',
        *,
        request: str | None = '{"id": 1}',
        error: str | None = None,
        options: str | None = None,
        address: str | None = "localhost:4770",
    ) -> Path:
        sections = []
        if address:
            sections.append(f"--- ADDRESS ---\n{address}")
        sections.append(f"--- ENDPOINT ---\n{endpoint}")
        if request:
            sections.append(f"--- REQUEST ---\n{request}")
        if response:
            sections.append(f"--- RESPONSE ---\n{response}")
        if error:
            sections.append(f"--- ERROR ---\n{error}")
        if options:
            sections.append(f"--- OPTIONS ---\n{options}")

        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(sections) + "\n", encoding="utf-8")
        return path

    return write


@pytest.fixture
def reachable() -> AsyncMock:
    """Health check reporting every service as reachable."""
    return AsyncMock(return_value=True)
