"""
Where the builder gets its package records from.

Resolving repositories into concrete versions happens elsewhere; a source
only hands over the finished, ordered list.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List

from packmirror.domain.errors import InputError
from packmirror.domain.listing import coerce_package
from packmirror.domain.models import Package

logger = logging.getLogger(__name__)


class PackageSource(ABC):
    """
    Abstract base class for package record providers.
    """

    @abstractmethod
    def get_packages(self) -> List[Package]:
        """Return every package version to publish, in publishing order."""
        pass


class StaticPackageSource(PackageSource):
    """A fixed list of packages, e.g. handed over by an in-process resolver."""

    def __init__(self, packages: List[Package]):
        self._packages = list(packages)

    def get_packages(self) -> List[Package]:
        return list(self._packages)


class JsonPackageSource(PackageSource):
    """
    Reads resolver output from ``*.json`` files in a directory.

    Each file holds either a list of version records or a document shaped
    like ``{"packages": {name: {version: record}}}``. Files are read in name
    order so the resulting list is stable between runs.
    """

    def __init__(self, packages_dir: Path):
        self.packages_dir = packages_dir

    def get_packages(self) -> List[Package]:
        if not self.packages_dir.is_dir():
            raise InputError(f"Package directory not found: {self.packages_dir}")

        packages: List[Package] = []
        for path in sorted(self.packages_dir.glob("*.json")):
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise InputError(f"Cannot read package file {path}: {e}") from e

            for record in self._records(raw, path):
                packages.append(coerce_package(record))

        logger.debug(f"Loaded {len(packages)} package versions from {self.packages_dir}")
        return packages

    @staticmethod
    def _records(raw: Any, path: Path) -> List[Dict[str, Any]]:
        if isinstance(raw, list):
            return raw
        if isinstance(raw, dict) and isinstance(raw.get("packages"), dict):
            records: List[Dict[str, Any]] = []
            for versions in raw["packages"].values():
                if isinstance(versions, dict):
                    records.extend(versions.values())
                elif isinstance(versions, list):
                    records.extend(versions)
            return records
        raise InputError(f"Unsupported package file layout: {path}")
