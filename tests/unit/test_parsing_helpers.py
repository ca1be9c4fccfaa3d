"""Unit tests for shared text, city, and boolean parsing helpers."""

from __future__ import annotations

import pytest

from tourvoice.parsing import normalize_city_key, normalize_optional_text, parse_permissive_boolean


def test_normalize_optional_text_handles_blank_values() -> None:
    """Normalization should return `None` for `None` and blank textual values."""

    assert normalize_optional_text(None) is None
    assert normalize_optional_text("") is None
    assert normalize_optional_text(" \n\t ") is None


def test_normalize_optional_text_strips_non_blank_values() -> None:
    """Normalization should return stripped content for non-empty values."""

    assert normalize_optional_text("  https://cdn.test/a.mp3  ") == "https://cdn.test/a.mp3"
    assert normalize_optional_text(42) == "42"


def test_normalize_city_key_lowercases_and_rejects_blank() -> None:
    """City keys scope canonical stops case-insensitively."""

    assert normalize_city_key("  Salem ") == "salem"
    assert normalize_city_key("   ") is None
    assert normalize_city_key(None) is None


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("TrUe", True),
        ("  ON ", True),
        ("1", True),
        ("FALSE", False),
        (" oFf ", False),
        ("0", False),
        (True, True),
    ],
)
def test_parse_permissive_boolean_accepts_mixed_case_tokens(token: object, expected: bool) -> None:
    """Permissive parsing should accept valid tokens case-insensitively."""

    assert parse_permissive_boolean(token) is expected


@pytest.mark.parametrize("value", ["", "   ", "maybe", "2", None])
def test_parse_permissive_boolean_returns_none_for_invalid_tokens(value: object) -> None:
    """Permissive parsing should return `None` for invalid or blank inputs."""

    assert parse_permissive_boolean(value) is None
