"""
Exceptions raised by the mirror builder.

Everything fatal derives from MirrorError so callers can catch a single type.
Failures to delete stale files are not represented here: they are logged and
retried on the next build instead of being raised.
"""
from __future__ import annotations


class MirrorError(Exception):
    """Base class for builder errors."""


class InputError(MirrorError):
    """Malformed or conflicting package records. Raised before anything is written."""


class SerializationError(MirrorError):
    """A payload could not be encoded as JSON."""


class StorageError(MirrorError):
    """Writing to the output directory failed."""


class BuildInProgressError(MirrorError):
    """Another build holds the lock on the output directory."""


class ConfigError(MirrorError):
    """The configuration file is missing required structure or cannot be parsed."""
