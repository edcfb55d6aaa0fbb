"""Tests for the stale file pruner."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from packmirror.services.pruner import StaleFilePruner


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{}", encoding="utf-8")
    return path


def test_prune_removes_files_and_empty_parents(tmp_path: Path) -> None:
    stale = _touch(tmp_path / "p2" / "old" / "name.json")
    kept = _touch(tmp_path / "p2" / "vendor" / "name.json")

    removed, failed = StaleFilePruner(tmp_path).prune(["p2/old/name.json"])

    assert removed == ["p2/old/name.json"]
    assert failed == []
    assert not stale.exists()
    assert not (tmp_path / "p2" / "old").exists()
    assert kept.exists()


def test_prune_twice_is_a_no_op(tmp_path: Path) -> None:
    _touch(tmp_path / "include" / "all$abc.json")
    pruner = StaleFilePruner(tmp_path)

    pruner.prune(["include/all$abc.json"])
    removed, failed = pruner.prune(["include/all$abc.json"])

    assert removed == ["include/all$abc.json"]
    assert failed == []


def test_failures_are_reported_not_raised(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    _touch(tmp_path / "busy" / "child.json")

    with caplog.at_level(logging.WARNING):
        removed, failed = StaleFilePruner(tmp_path).prune(["busy"])

    assert removed == []
    assert failed == ["busy"]
    assert "Failed to prune busy" in caplog.text


def test_paths_outside_the_output_dir_are_refused(tmp_path: Path) -> None:
    outside = _touch(tmp_path / "outside.json")
    output_dir = tmp_path / "build"
    output_dir.mkdir()

    removed, failed = StaleFilePruner(output_dir).prune(["../outside.json"])

    assert failed == ["../outside.json"]
    assert outside.exists()


def test_find_orphans_matches_only_hash_named_files(tmp_path: Path) -> None:
    digest = "a" * 40
    _touch(tmp_path / "include" / f"all${digest}.json")
    _touch(tmp_path / "include" / "all$short.json")
    _touch(tmp_path / "include" / "other.json")
    keep_digest = "b" * 40
    _touch(tmp_path / "include" / f"all${keep_digest}.json")

    orphans = StaleFilePruner(tmp_path).find_orphans(
        "include/all$%hash%.json", 40, keep=[f"include/all${keep_digest}.json"]
    )

    assert orphans == [f"include/all${digest}.json"]


def test_find_orphans_ignores_fixed_names(tmp_path: Path) -> None:
    _touch(tmp_path / "out.json")

    assert StaleFilePruner(tmp_path).find_orphans("out.json", 40, keep=[]) == []


def test_find_orphans_refuses_hash_in_dirname(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="dirname"):
        StaleFilePruner(tmp_path).find_orphans("%hash%/all$%hash%.json", 40, keep=[])
