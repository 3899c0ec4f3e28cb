"""Comparison of actual call output against the expected sections."""

import json
import re
from dataclasses import dataclass
from typing import Any

from gctf_runner.definition import TestOptions

DESC_RE = re.compile(r"desc = (.*)$", re.MULTILINE)
WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, kw_only=True)
class Comparison:
    """Outcome of a comparison, with a human-readable explanation on mismatch."""

    matched: bool
    detail: str | None = None


def parse_json_stream(text: str) -> Any:
    """Parse one or more concatenated JSON documents.

    Streaming calls print several messages back to back; they are returned as
    a list. Text that is not JSON is returned stripped.
    """
    decoder = json.JSONDecoder()
    documents: list[Any] = []
    index = 0
    text = text.strip()

    while index < len(text):
        try:
            document, end = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            return text
        documents.append(document)
        index = end
        while index < len(text) and text[index].isspace():
            index += 1

    if len(documents) == 1:
        return documents[0]
    return documents


def redact(value: Any, paths: tuple[str, ...]) -> Any:
    """Remove dotted field paths from a parsed document."""
    if not paths:
        return value
    if isinstance(value, list):
        return [redact(item, paths) for item in value]
    if not isinstance(value, dict):
        return value

    heads = {path.split(".", 1)[0] for path in paths if "." not in path}
    nested: dict[str, tuple[str, ...]] = {}
    for path in paths:
        head, sep, rest = path.partition(".")
        if sep:
            nested[head] = (*nested.get(head, ()), rest)

    return {
        key: redact(item, nested.get(key, ()))
        for key, item in value.items()
        if key not in heads
    }


def values_match(
    actual: Any, expected: Any, *, partial: bool, tolerance: float | None
) -> bool:
    """Recursively compare parsed documents."""
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return False
        if not partial and actual.keys() != expected.keys():
            return False
        return all(
            key in actual
            and values_match(
                actual[key], value, partial=partial, tolerance=tolerance
            )
            for key, value in expected.items()
        )

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return False
        if len(actual) != len(expected) and not (
            partial and len(actual) > len(expected)
        ):
            return False
        return all(
            values_match(a, e, partial=partial, tolerance=tolerance)
            for a, e in zip(actual, expected, strict=False)
        )

    if (
        tolerance is not None
        and _is_number(actual)
        and _is_number(expected)
    ):
        return abs(actual - expected) <= tolerance

    return bool(actual == expected)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def compare(actual: str, expected: str, options: TestOptions) -> bool:
    """Return whether the actual output satisfies the expected response."""
    redacted = tuple(options.redact)
    return values_match(
        redact(parse_json_stream(actual), redacted),
        redact(parse_json_stream(expected), redacted),
        partial=options.partial,
        tolerance=options.tolerance,
    )


def compare_response(actual: str, expected: str, options: TestOptions) -> Comparison:
    """Compare a successful call's output with the RESPONSE section.

    On mismatch the detail shows both documents after redaction.
    """
    if compare(actual, expected, options):
        return Comparison(matched=True)

    redacted = tuple(options.redact)
    actual_doc = redact(parse_json_stream(actual), redacted)
    expected_doc = redact(parse_json_stream(expected), redacted)
    return Comparison(
        matched=False,
        detail=f"Response mismatch\nExpected: {_dump(expected_doc)}\n"
        f"Actual: {_dump(actual_doc)}",
    )


def _dump(document: Any) -> str:
    if isinstance(document, str):
        return document
    return json.dumps(document, sort_keys=True, separators=(",", ":"))


def _normalize(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text).strip()


def compare_error(output: str, status: int, expected_error: str) -> Comparison:
    """Compare a failed call with the ERROR section.

    The expected error is either JSON with optional ``code`` and ``message``
    fields, or plain text matched as a substring of the output. Messages are
    compared as whitespace-normalized substrings.
    """
    expected = parse_json_stream(expected_error)
    actual = parse_json_stream(output)

    actual_code: int | None = status or None
    actual_message: str | None = None
    if isinstance(actual, dict):
        actual_code = actual.get("code", actual_code)
        actual_message = actual.get("message")
    if actual_message is None and (match := DESC_RE.search(output)):
        actual_message = match.group(1)

    if not isinstance(expected, dict):
        if _normalize(str(expected)) in _normalize(output):
            return Comparison(matched=True)
        return Comparison(
            matched=False, detail=f"Expected error '{expected}' not found in output"
        )

    expected_code = expected.get("code")
    if expected_code is not None and actual_code != expected_code:
        return Comparison(
            matched=False,
            detail=f"Expected error code {expected_code}, got {actual_code}",
        )

    expected_message = expected.get("message")
    if expected_message:
        haystack = _normalize(actual_message if actual_message else output)
        if _normalize(expected_message) not in haystack:
            return Comparison(
                matched=False,
                detail=f"Expected error message '{expected_message}', "
                f"got '{actual_message or output.strip()}'",
            )

    return Comparison(matched=True)
