"""Fixtures for executor tests."""

from collections.abc import Iterator

import pytest
from aioresponses import aioresponses as aioresponses_cls


@pytest.fixture
def aioresponses() -> Iterator[aioresponses_cls]:
    """Intercept aiohttp requests."""
    with aioresponses_cls() as mock:
        yield mock
