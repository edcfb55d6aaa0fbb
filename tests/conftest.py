from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

import pytest

from packmirror.data.config import DATA_ROOT_ENV_VAR

# Keep anything that falls back to the default data dir out of the source tree.
os.environ.setdefault(DATA_ROOT_ENV_VAR, tempfile.mkdtemp(prefix="packmirror-tests-"))


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """The directory a build writes into."""
    return tmp_path / "build"


@pytest.fixture
def read_json() -> Callable[[Path], Any]:
    def _read(path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    return _read
