"""
URL templates published in the root manifest.

Clients substitute ``%package%`` and ``%hash%`` themselves; the builder only
emits the templates and resolves them to paths for the files it writes.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

PROVIDERS_URL = "p/%package%$%hash%.json"
METADATA_URL = "p2/%package%.json"

PACKAGE_PLACEHOLDER = "%package%"
HASH_PLACEHOLDER = "%hash%"


def base_path(homepage: Optional[str]) -> str:
    """
    Root-relative path of the public base URL, ending in exactly one slash.

    ``http://host:1234`` and ``http://host:1234/`` both give ``/``;
    ``http://host/sub-dir`` gives ``/sub-dir/``. Without a homepage the
    templates stay unprefixed and this returns an empty string.
    """
    if not homepage:
        return ""
    path = urlsplit(homepage.rstrip("/")).path
    return path.rstrip("/") + "/"


def prefixed_url(homepage: Optional[str], suffix: str) -> str:
    return base_path(homepage) + suffix.lstrip("/")


def package_url(template: str, package_name: str) -> str:
    """Resolve the package placeholder of a template, leaving ``%hash%`` in place."""
    return template.replace(PACKAGE_PLACEHOLDER, package_name)
