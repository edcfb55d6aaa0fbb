"""Tests for the carry-forward diff encoding."""

from __future__ import annotations

import pytest

from packmirror.domain.minifier import UNSET, expand, json_equal, minify


def _record(version: str, **extra: object) -> dict:
    record = {
        "name": "vendor/name",
        "version": version,
        "version_normalized": f"{version}.0.0",
        "type": "library",
    }
    record.update(extra)
    return record


def test_first_record_is_complete_and_later_ones_hold_changes() -> None:
    minified = minify([_record("1.0"), _record("2.0")])

    assert minified == [
        _record("1.0"),
        {"version": "2.0", "version_normalized": "2.0.0.0"},
    ]


def test_nested_values_compare_structurally() -> None:
    versions = [
        _record("1.0", require={"php": ">=8.1", "ext-json": "*"}),
        _record("1.1", require={"php": ">=8.1", "ext-json": "*"}),
        _record("1.2", require={"php": ">=8.2"}),
    ]

    minified = minify(versions)

    assert "require" not in minified[1]
    assert minified[2]["require"] == {"php": ">=8.2"}


def test_removed_keys_get_the_unset_marker() -> None:
    minified = minify([_record("1.0", license=["MIT"]), _record("2.0")])

    assert minified[1]["license"] == UNSET


def test_key_reappearing_after_removal_is_emitted_again() -> None:
    minified = minify([_record("1.0", license=["MIT"]), _record("2.0"), _record("3.0", license=["MIT"])])

    assert minified[2]["license"] == ["MIT"]


def test_expand_reconstructs_every_version() -> None:
    versions = [
        _record("1.0", license=["MIT"], require={"php": ">=7.4"}),
        _record("1.1", license=["MIT"], require={"php": ">=8.0"}),
        _record("2.0", require={"php": ">=8.0"}, suggest={"ext-intl": "for i18n"}),
        _record("2.1", license=["MIT"], type="metapackage"),
    ]

    assert expand(minify(versions)) == versions


@pytest.mark.parametrize("before, after", [
    (1, True),
    (0, False),
    (1, 1.0),
    ({"a": 1, "b": 2}, {"b": 2, "a": 1}),
    ([1, 0], [True, False]),
])
def test_values_of_a_different_json_type_are_changes(before: object, after: object) -> None:
    versions = [_record("1.0", extra={"flag": before}), _record("2.0", extra={"flag": after})]

    minified = minify(versions)

    assert json_equal(minified[1]["extra"], {"flag": after})
    assert json_equal(expand(minified)[1]["extra"], {"flag": after})


def test_json_equal() -> None:
    assert json_equal({"a": [1, {"b": None}]}, {"a": [1, {"b": None}]})
    assert not json_equal(1, True)
    assert not json_equal(1, 1.0)
    assert not json_equal([1], [1, 2])


def test_empty_list() -> None:
    assert minify([]) == []
    assert expand([]) == []


def test_minify_does_not_mutate_its_input() -> None:
    versions = [_record("1.0"), _record("2.0")]
    snapshot = [dict(v) for v in versions]

    expand(minify(versions))

    assert versions == snapshot
