"""
Serialize payloads to JSON files addressed by content hash or by fixed name.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List

from packmirror.domain.errors import SerializationError, StorageError
from packmirror.domain.models import HashAlgorithm, IncludeArtifact
from packmirror.domain.urls import HASH_PLACEHOLDER

logger = logging.getLogger(__name__)


def encode_json(payload: Any, pretty: bool = True) -> str:
    """
    Canonical JSON text for an artifact or the root manifest.

    Slashes and unicode are never escaped, key order is preserved and the
    text ends with a single newline, so identical payloads always give
    identical bytes.
    """
    if pretty:
        text = json.dumps(payload, indent=4, ensure_ascii=False, allow_nan=False)
    else:
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text + "\n"


def content_hash(data: bytes, algorithm: HashAlgorithm) -> str:
    return hashlib.new(algorithm, data).hexdigest()


def write_atomic(path: Path, data: bytes) -> None:
    """
    Write bytes through a temp file in the target directory, then rename.

    Readers see either the old file or the complete new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, 0o644)
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class ArtifactWriter:
    """
    Writes include, provider and p2 files below an output directory.

    Hash-named files (template containing ``%hash%``) are immutable: if one
    already exists it is left alone. Fixed-name files are rewritten only when
    their bytes change, which keeps mtimes and CDN validators stable.
    """

    def __init__(self, output_dir: Path, pretty: bool = True):
        self.output_dir = output_dir
        self.pretty = pretty
        self.written: List[str] = []

    def resolve(self, url: str) -> Path:
        return self.output_dir / url.lstrip("/")

    def write(self, payload: Any, url_template: str, algorithm: HashAlgorithm = "sha1") -> IncludeArtifact:
        """
        Write ``payload`` to the file named by ``url_template``.

        Returns the artifact with its final URL and hash; ``written`` tells
        whether the file on disk was created or changed.
        """
        try:
            data = encode_json(payload, self.pretty).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode {url_template}: {e}") from e

        digest = content_hash(data, algorithm)
        url = url_template.replace(HASH_PLACEHOLDER, digest).lstrip("/")
        path = self.resolve(url)

        if HASH_PLACEHOLDER in url_template:
            unchanged = path.is_file()
        else:
            unchanged = path.is_file() and self._read_bytes(path) == data

        if unchanged:
            logger.debug(f"Unchanged: {url}")
            return IncludeArtifact(url=url, algorithm=algorithm, hash=digest, written=False)

        try:
            write_atomic(path, data)
        except OSError as e:
            raise StorageError(f"Could not write file {path}: {e}") from e

        logger.info(f"Wrote packages to {url}")
        self.written.append(url)
        return IncludeArtifact(url=url, algorithm=algorithm, hash=digest, written=True)

    @staticmethod
    def _read_bytes(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Could not read file {path}: {e}") from e
