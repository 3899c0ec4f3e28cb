"""Tests for response and error comparison."""

import pytest

from gctf_runner.comparison import (
    compare,
    compare_error,
    compare_response,
    parse_json_stream,
    redact,
)
from gctf_runner.definition import TestOptions


def test_parse_json_stream_handles_multiple_documents() -> None:
    """Concatenated documents become a list; a single one is returned as is."""
    assert parse_json_stream('{"a": 1}\n{"a": 2}') == [{"a": 1}, {"a": 2}]
    assert parse_json_stream(' {"a": 1} ') == {"a": 1}
    assert parse_json_stream("not json") == "not json"


def test_redact_removes_nested_paths() -> None:
    """Dotted paths remove nested fields, including inside lists."""
    document = [{"id": 1, "meta": {"trace": "x", "keep": True}, "ts": 5}]

    assert redact(document, ("ts", "meta.trace")) == [{"id": 1, "meta": {"keep": True}}]


def test_exact_comparison_ignores_key_order() -> None:
    """Exact comparison is structural, not textual."""
    assert compare('{"b": 2, "a": 1}', '{"a": 1, "b": 2}', TestOptions())
    assert not compare('{"a": 1, "b": 2}', '{"a": 1}', TestOptions())


def test_partial_comparison_accepts_extra_fields() -> None:
    """Partial comparison checks only the expected fields."""
    options = TestOptions(partial=True)

    assert compare('{"a": 1, "b": {"c": 3, "d": 4}}', '{"b": {"c": 3}}', options)
    assert not compare('{"a": 1}', '{"a": 2}', options)


def test_tolerance_applies_to_numbers() -> None:
    """Numbers within the tolerance are equal."""
    options = TestOptions(tolerance=0.1)

    assert compare('{"price": 9.95}', '{"price": 10}', options)
    assert not compare('{"price": 9.5}', '{"price": 10}', options)


def test_redacted_fields_are_ignored() -> None:
    """Redacted fields never cause a mismatch."""
    options = TestOptions(redact=("created_at",))

    assert compare('{"id": 1, "created_at": "now"}', '{"id": 1}', options)


def test_mismatch_detail_shows_both_documents() -> None:
    """A mismatch explains what differed."""
    comparison = compare_response('{"a": 1}', '{"a": 2}', TestOptions())

    assert not comparison.matched
    assert comparison.detail == 'Response mismatch\nExpected: {"a":2}\nActual: {"a":1}'


@pytest.mark.parametrize(
    ("output", "status", "expected", "matched"),
    [
        ('{"code": 5, "message": "user  not found"}', 5, '{"code": 5}', True),
        ('{"code": 5, "message": "user  not found"}', 5, '{"code": 3}', False),
        (
            '{"code": 5, "message": "user  not found"}',
            5,
            '{"message": "user not"}',
            True,
        ),
        ("ERROR:\n  Code: NotFound\n  Message: gone", 5, "Code: NotFound", True),
        ("rpc error: code = NotFound desc = user gone", 5, '{"message": "gone"}', True),
        ("rpc error: code = NotFound desc = user gone", 5, '{"code": 5}', True),
        ("rpc error: code = NotFound desc = other", 5, '{"message": "gone"}', False),
    ],
)
def test_compare_error(output: str, status: int, expected: str, matched: bool) -> None:
    """Error code must match exactly; messages match as normalized substrings."""
    assert compare_error(output, status, expected).matched is matched
