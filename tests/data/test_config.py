"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from packmirror.data.config import DATA_ROOT_ENV_VAR, get_data_dir, load_config, resolve_output_dir
from packmirror.domain.errors import ConfigError
from packmirror.domain.models import MirrorConfig


def test_defaults_when_no_file(tmp_path: Path) -> None:
    assert load_config(tmp_path) == MirrorConfig()


def test_json_config(tmp_path: Path) -> None:
    (tmp_path / "mirror.json").write_text(
        '{"providers": true, "notify-batch": "http://x/notify", "homepage": "http://localhost:1234/sub-dir"}',
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.providers is True
    assert config.notify_batch == "http://x/notify"
    assert config.homepage == "http://localhost:1234/sub-dir"


def test_yaml_config(tmp_path: Path) -> None:
    (tmp_path / "mirror.yaml").write_text(
        """
pretty-print: false
minify: v2-diff
repositories:
  - type: vcs
    url: git@github.com:acme/lib.git
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.pretty_print is False
    assert config.minify == "v2-diff"
    assert config.repositories[0].url == "git@github.com:acme/lib.git"


@pytest.mark.parametrize("content", ["{broken", "[1, 2]", '{"minify": "zip"}'])
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    (tmp_path / "mirror.json").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_output_dir_resolution(tmp_path: Path) -> None:
    assert resolve_output_dir(MirrorConfig(), tmp_path) == tmp_path / "public"
    assert resolve_output_dir(MirrorConfig(**{"output-dir": "web"}), tmp_path) == tmp_path / "web"
    assert resolve_output_dir(MirrorConfig(**{"output-dir": str(tmp_path / "abs")}), Path("/elsewhere")) == tmp_path / "abs"


def test_data_dir_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DATA_ROOT_ENV_VAR, str(tmp_path / "data"))

    assert get_data_dir() == tmp_path / "data"
    assert (tmp_path / "data").is_dir()
