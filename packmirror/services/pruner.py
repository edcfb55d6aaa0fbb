"""
Delete artifacts the committed manifest no longer references.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Tuple

from packmirror.domain.urls import HASH_PLACEHOLDER

logger = logging.getLogger(__name__)


class StaleFilePruner:
    """
    Removes files below ``output_dir`` by their output-relative path.

    Only call this after the new manifest is on disk. Deleting is best
    effort: failures are logged and handed back so the caller can retry
    them on the next build, they never abort a build.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def prune(self, urls: Iterable[str]) -> Tuple[List[str], List[str]]:
        """
        Delete each path. Returns ``(removed, failed)``.

        A path that is already gone counts as removed, so pruning the same
        set twice is harmless.
        """
        logger.info("Pruning stale files")
        removed: List[str] = []
        failed: List[str] = []
        root = self.output_dir.resolve()

        for url in urls:
            path = (self.output_dir / url.lstrip("/")).resolve()
            if root not in path.parents:
                logger.warning(f"Refusing to prune {url}: outside of {self.output_dir}")
                failed.append(url)
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to prune {url}: {e}")
                failed.append(url)
                continue

            logger.debug(f"Pruned {url}")
            removed.append(url)
            self._remove_empty_parents(path.parent, root)

        return removed, failed

    def find_orphans(self, url_template: str, hash_length: int, keep: Iterable[str]) -> List[str]:
        """
        List hash-named files matching ``url_template`` that are not in ``keep``.

        Catches files left by builds that did not record their artifacts,
        e.g. output directories created by older tooling.
        """
        url_template = url_template.lstrip("/")
        dirname, _, basename = url_template.rpartition("/")
        if HASH_PLACEHOLDER not in basename:
            return []
        if HASH_PLACEHOLDER in dirname:
            raise ValueError(f"Refusing to prune when {HASH_PLACEHOLDER} is in dirname: {url_template}")

        directory = self.output_dir / dirname if dirname else self.output_dir
        if not directory.is_dir():
            return []

        prefix, _, suffix = basename.partition(HASH_PLACEHOLDER)
        pattern = re.compile(re.escape(prefix) + f"[0-9a-f]{{{hash_length}}}" + re.escape(suffix))
        keep_set = set(keep)

        orphans: List[str] = []
        for entry in sorted(directory.iterdir()):
            if not entry.is_file() or not pattern.fullmatch(entry.name):
                continue
            url = f"{dirname}/{entry.name}" if dirname else entry.name
            if url not in keep_set:
                orphans.append(url)
        return orphans

    @staticmethod
    def _remove_empty_parents(directory: Path, root: Path) -> None:
        while directory != root and root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent
