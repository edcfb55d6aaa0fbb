"""
Carry-forward diff encoding of a package's version list ("composer/2.0").

Public contract for consumers of minified p2/ files:

* The first record of a list is complete.
* Every following record only holds the keys that differ from the record
  before it, after that record was itself expanded.
* A key whose value is the string ``"__unset"`` was removed in this version.
* Keys that are absent are unchanged.

``expand`` implements the client side and is the reference for this contract.
"""
from __future__ import annotations

from typing import Any, Dict, List, Sequence

MINIFY_ALGORITHM_V2 = "composer/2.0"

UNSET = "__unset"


def json_equal(a: Any, b: Any) -> bool:
    """
    Deep equality over JSON values.

    Unlike ``==``, ``1``, ``1.0`` and ``true`` are three different values, and
    object keys must also appear in the same order.
    """
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return list(a) == list(b) and all(json_equal(a[key], b[key]) for key in a)
    if isinstance(a, list):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    return a == b


def minify(versions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Encode an ordered list of full version records as carry-forward diffs.
    """
    minified: List[Dict[str, Any]] = []
    last_known: Dict[str, Any] = {}

    for index, version in enumerate(versions):
        if index == 0:
            last_known = dict(version)
            minified.append(dict(version))
            continue

        diff: Dict[str, Any] = {}
        for key, value in version.items():
            if key not in last_known or not json_equal(last_known[key], value):
                diff[key] = value
                last_known[key] = value

        for key in list(last_known):
            if key not in version:
                diff[key] = UNSET
                del last_known[key]

        minified.append(diff)

    return minified


def expand(versions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Rebuild full version records from carry-forward diffs.
    """
    expanded: List[Dict[str, Any]] = []
    current: Dict[str, Any] = {}

    for index, diff in enumerate(versions):
        if index == 0:
            current = dict(diff)
        else:
            current = dict(current)
            for key, value in diff.items():
                if value == UNSET:
                    current.pop(key, None)
                else:
                    current[key] = value
        expanded.append(current)

    return expanded
