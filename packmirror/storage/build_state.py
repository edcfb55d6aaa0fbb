"""
Persist the state one build hands to the next: provider uids, the set of
artifacts the committed manifest references and deletions still pending.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from packmirror.domain.errors import StorageError
from packmirror.domain.models import BuildState
from packmirror.storage.artifact_writer import write_atomic

logger = logging.getLogger(__name__)

STATE_FILENAME = ".build-state.json"


class BuildStateStore:
    """Loads and saves BuildState next to the manifest it belongs to."""

    def __init__(self, output_dir: Path):
        self.state_file = output_dir / STATE_FILENAME

    def load(self) -> BuildState:
        """
        Load state from disk. Only a missing file starts from scratch; an
        unreadable one raises StorageError and leaves the file in place.
        """
        if not self.state_file.exists():
            logger.info(f"No build state at {self.state_file}, starting fresh")
            return BuildState()
        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
            return BuildState(**data)
        except (OSError, ValueError, ValidationError, TypeError) as e:
            raise StorageError(f"Unreadable build state {self.state_file}: {e}") from e

    def save(self, state: BuildState) -> None:
        """Write state to disk unless the file already holds the same content."""
        data = state.model_dump_json(indent=2).encode("utf-8")
        try:
            if self.state_file.is_file() and self.state_file.read_bytes() == data:
                return
            write_atomic(self.state_file, data)
        except OSError as e:
            raise StorageError(f"Could not write build state {self.state_file}: {e}") from e


class UidRegistry:
    """
    Hands out provider uids.

    A uid is bound to a package name and the hash of one version record. The
    same pair always gets the same uid back; a new pair gets the next number,
    so a uid is never reused for different content.
    """

    def __init__(self, state: BuildState):
        self._uids = dict(state.uids)
        self._next_uid = state.next_uid
        self._used: set = set()

    def uid_for(self, package_name: str, record_hash: str) -> int:
        key = f"{package_name}#{record_hash}"
        self._used.add(key)
        uid = self._uids.get(key)
        if uid is None:
            uid = self._next_uid
            self._uids[key] = uid
            self._next_uid += 1
        return uid

    def apply(self, state: BuildState) -> None:
        """
        Copy the registry back into ``state``.

        Entries not requested during this build are dropped. ``next_uid`` is
        kept, so dropped numbers are never handed out again.
        """
        state.uids = {k: v for k, v in self._uids.items() if k in self._used}
        state.next_uid = self._next_uid


def merge_paths(*groups: Iterable[str]) -> list:
    """Union of path lists, keeping first-seen order."""
    seen: dict = {}
    for group in groups:
        for path in group:
            seen.setdefault(path, None)
    return list(seen)
