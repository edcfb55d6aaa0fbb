"""
Static, CDN-friendly mirror of a package repository's metadata.

The builder turns a finished list of package records into a root manifest
(``packages.json``) plus content-addressed include/provider files and
name-addressed ``p2/`` files, then prunes whatever the new manifest no
longer references.
"""

__version__ = "0.1.0"
