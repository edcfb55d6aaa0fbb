"""
Group resolved package records into the canonical listing.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, Union

from pydantic import ValidationError

from packmirror.domain.errors import InputError
from packmirror.domain.minifier import json_equal
from packmirror.domain.models import Package, PackageListing

logger = logging.getLogger(__name__)

# Package names become file paths below p/ and p2/, so every segment must
# start with a letter or digit.
PACKAGE_NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*(/[A-Za-z0-9][A-Za-z0-9_.-]*)?")


def coerce_package(raw: Union[Package, Dict[str, Any]]) -> Package:
    """
    Accept either a Package or a plain record dict.
    """
    if isinstance(raw, Package):
        return raw
    try:
        return Package(**raw)
    except (TypeError, ValidationError) as e:
        name = raw.get("name") if isinstance(raw, dict) else None
        raise InputError(f"Invalid package record {name or raw!r}: {e}") from e


def normalize_packages(packages: Iterable[Union[Package, Dict[str, Any]]]) -> PackageListing:
    """
    Build ``name -> version -> record`` from a flat list of packages.

    Names and versions keep the order in which they were first seen, so an
    identical input always yields an identical listing (and identical hashes
    further down). Exact duplicates are collapsed; two different records for
    the same name and version are rejected.
    """
    listing: PackageListing = {}

    for raw in packages:
        package = coerce_package(raw)
        if not PACKAGE_NAME_PATTERN.fullmatch(package.name):
            raise InputError(f"Invalid package name: {package.name!r}")
        record = package.dump()
        versions = listing.setdefault(package.name, {})

        existing = versions.get(package.version)
        if existing is None:
            versions[package.version] = record
            continue

        if not json_equal(existing, record):
            raise InputError(
                f"Conflicting records for {package.name} {package.version}: "
                f"resolve duplicates before building"
            )
        logger.debug(f"Skipping duplicate record for {package.name} {package.version}")

    return listing


def split_stability(versions: Dict[str, Dict[str, Any]]) -> tuple[list, list]:
    """
    Split a package's version records into (stable, dev) lists, preserving order.

    A version is a dev version when it starts with ``dev-`` or ends with ``-dev``.
    """
    stable: list = []
    dev: list = []
    for record in versions.values():
        version = str(record.get("version", ""))
        if version.startswith("dev-") or version.endswith("-dev"):
            dev.append(record)
        else:
            stable.append(record)
    return stable, dev


def find_replacements(listing: PackageListing, replaced: str) -> PackageListing:
    """
    Return the packages that declare ``replace`` on the given package name.

    A package is included (with all of its versions) as soon as one of its
    versions replaces ``replaced``.
    """
    replacements: PackageListing = {}
    for name, versions in listing.items():
        if name == replaced:
            continue
        for record in versions.values():
            replace = record.get("replace")
            if isinstance(replace, dict) and replaced in replace:
                replacements[name] = versions
                break
    return replacements
