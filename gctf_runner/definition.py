"""Parsing of .gctf test definition files."""

import logging
import re
from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import Field, ValidationError

from gctf_runner.errors import TestDefinitionError
from gctf_runner.models.base import Model

log = logging.getLogger(__name__)

SECTION_RE = re.compile(r"^---\s*([A-Z_]+)\s*---\s*$")

KNOWN_SECTIONS = frozenset(
    {
        "ADDRESS",
        "ENDPOINT",
        "REQUEST",
        "RESPONSE",
        "ERROR",
        "HEADERS",
        "REQUEST_HEADERS",
        "OPTIONS",
        "TLS",
    }
)


class TestOptions(Model):
    """Inline options controlling comparison and the per-test timeout."""

    __test__ = False

    partial: bool = Field(default=False, description="Expected is a subset")
    redact: Sequence[str] = Field(
        default_factory=tuple, description="Fields removed before comparing"
    )
    tolerance: float | None = Field(
        default=None, ge=0, description="Absolute tolerance for numbers"
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Per-test timeout override in seconds"
    )


class TlsConfig(Model):
    """TLS settings for the call, paths relative to the test file."""

    ca_cert: str | None = None
    cert: str | None = None
    key: str | None = None
    server_name: str | None = None
    insecure: bool = False


class TestCase(Model):
    """A parsed test file."""

    __test__ = False

    source: str = Field(..., description="Path of the file it was parsed from")
    address: str = Field(..., description="host:port of the service under test")
    endpoint: str = Field(..., min_length=1, description="package.Service/Method")
    request: str | None = None
    response: str | None = None
    error: str | None = None
    headers: Sequence[str] = Field(default_factory=tuple)
    options: TestOptions = Field(default_factory=TestOptions)
    tls: TlsConfig | None = None
    deprecated_headers: bool = False


def strip_comment(line: str) -> str:
    """Remove a trailing ``#`` comment that is not inside a string literal."""
    in_string = False
    escaped = False
    for index, char in enumerate(line):
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif char == "#" and not in_string:
            return line[:index].rstrip()
    return line.rstrip()


def split_sections(text: str) -> Mapping[str, list[str]]:
    """Group the lines of a test file under their ``--- NAME ---`` headers."""
    sections: dict[str, list[str]] = {}
    current: list[str] | None = None

    for raw_line in text.splitlines():
        if match := SECTION_RE.match(raw_line.strip()):
            name = match.group(1)
            if name not in KNOWN_SECTIONS:
                raise TestDefinitionError(f"Unknown section '{name}'")
            if name in sections:
                raise TestDefinitionError(f"Duplicate section '{name}'")
            current = sections[name] = []
            continue

        if current is None or raw_line.lstrip().startswith("#"):
            continue

        if line := strip_comment(raw_line):
            current.append(line)

    return sections


def parse_key_values(lines: Sequence[str]) -> Mapping[str, str]:
    """Parse ``key: value`` lines."""
    values: dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep:
            raise TestDefinitionError(f"Expected 'key: value', got '{line.strip()}'")
        values[key.strip()] = value.strip()
    return values


def parse_redact(value: str) -> tuple[str, ...]:
    """Parse ``["a", "b"]`` or ``a, b`` into field names."""
    cleaned = value.strip().strip("[]")
    return tuple(
        field.strip().strip("'\"") for field in cleaned.split(",") if field.strip()
    )


def parse_options(lines: Sequence[str]) -> TestOptions:
    """Build TestOptions from the OPTIONS section."""
    values = parse_key_values(lines)
    options: dict[str, object] = {}

    if "partial" in values:
        options["partial"] = values["partial"].lower() == "true"
    if "redact" in values:
        options["redact"] = parse_redact(values["redact"])
    if "tolerance" in values:
        options["tolerance"] = values["tolerance"]
    if "timeout" in values:
        options["timeout"] = values["timeout"].removesuffix("s")

    unknown = set(values) - {"partial", "redact", "tolerance", "timeout"}
    if unknown:
        log.warning("Ignoring unknown options: %s", ", ".join(sorted(unknown)))

    return TestOptions.model_validate(options)


def parse_test_case(text: str, *, source: str, default_address: str) -> TestCase:
    """Parse the text of a test file.

    Args:
        text: File contents
        source: Path used in error messages and stored on the result
        default_address: Address used when the file has no ADDRESS section

    Returns:
        The parsed test case

    Raises:
        TestDefinitionError: If the file is malformed

    """
    try:
        sections = split_sections(text)

        if "RESPONSE" in sections and "ERROR" in sections:
            raise TestDefinitionError("RESPONSE and ERROR sections are exclusive")
        if not sections.get("ENDPOINT"):
            raise TestDefinitionError("No ENDPOINT specified")

        def joined(name: str) -> str | None:
            lines = sections.get(name)
            return "\n".join(lines) if lines else None

        headers = [*sections.get("HEADERS", []), *sections.get("REQUEST_HEADERS", [])]
        tls_lines = sections.get("TLS")

        return TestCase(
            source=source,
            address=(joined("ADDRESS") or default_address).strip(),
            endpoint=(joined("ENDPOINT") or "").strip(),
            request=joined("REQUEST"),
            response=joined("RESPONSE"),
            error=joined("ERROR"),
            headers=tuple(header.strip() for header in headers),
            options=parse_options(sections.get("OPTIONS", [])),
            tls=(
                TlsConfig.model_validate(parse_key_values(tls_lines))
                if tls_lines
                else None
            ),
            deprecated_headers="HEADERS" in sections,
        )
    except ValidationError as e:
        raise TestDefinitionError(f"Invalid test file {source}: {e}") from e
    except TestDefinitionError as e:
        raise TestDefinitionError(f"Invalid test file {source}: {e}") from e


def read_timeout(path: Path) -> float | None:
    """OPTIONS timeout of a test file, without validating the rest of it.

    Returns None when the file sets no timeout or cannot be read; the worker
    reports unreadable files when it runs them.
    """
    try:
        sections = split_sections(path.read_text(encoding="utf-8"))
        value = parse_key_values(sections.get("OPTIONS", ())).get("timeout")
        timeout = float(value.removesuffix("s")) if value else None
    except (OSError, TestDefinitionError, ValueError):
        return None
    return timeout if timeout and timeout > 0 else None


async def load_test_case(path: Path, default_address: str) -> TestCase:
    """Load and parse a test file.

    Raises:
        FileNotFoundError: If the file does not exist
        TestDefinitionError: If the file is malformed

    """
    if not path.is_file():
        raise FileNotFoundError(f"Test file not found: {path}")

    test_case = parse_test_case(
        path.read_text(encoding="utf-8"),
        source=str(path),
        default_address=default_address,
    )
    if test_case.deprecated_headers:
        log.warning(
            "HEADERS section is deprecated in %s, use REQUEST_HEADERS instead", path
        )
    return test_case
