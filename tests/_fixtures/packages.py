"""Package records shared by the builder tests."""

from __future__ import annotations

from typing import Any, Dict, List

from packmirror.domain.models import Package


def make_packages(major: int, name: str = "vendor/name") -> List[Package]:
    return [Package(name=name, version=f"{major}.0", version_normalized=f"{major}.0.0.0")]


def make_listing(major: int, name: str = "vendor/name") -> Dict[str, Dict[str, Dict[str, Any]]]:
    version = f"{major}.0"
    return {
        name: {
            version: {
                "name": name,
                "version": version,
                "version_normalized": f"{major}.0.0.0",
                "type": "library",
            }
        }
    }
