"""
Builds the static repository: artifacts first, root manifest last, then prune.

A build is a single-writer batch job. Two builds running against the same
output directory can delete each other's fresh files; callers must serialize
them (see ``packmirror.services.build_runner.BuildRunner``).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from packmirror.domain.errors import SerializationError, StorageError
from packmirror.domain.listing import find_replacements, normalize_packages, split_stability
from packmirror.domain.minifier import MINIFY_ALGORITHM_V2, minify
from packmirror.domain.models import (
    BuildResult,
    IncludeArtifact,
    MirrorConfig,
    Package,
    PackageListing,
)
from packmirror.domain.urls import METADATA_URL, PROVIDERS_URL, package_url, prefixed_url
from packmirror.services.pruner import StaleFilePruner
from packmirror.storage.artifact_writer import ArtifactWriter, content_hash, encode_json, write_atomic
from packmirror.storage.build_state import BuildStateStore, UidRegistry, merge_paths

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "packages.json"


class PackagesBuilder:
    """
    Dumps a list of packages as a static repository below ``output_dir``.
    """

    def __init__(self, output_dir: Path, config: Optional[MirrorConfig] = None):
        self.output_dir = output_dir
        self.config = config or MirrorConfig()
        self.filename = output_dir / MANIFEST_FILENAME
        self.state_store = BuildStateStore(output_dir)
        self.pruner = StaleFilePruner(output_dir)

    @property
    def minified(self) -> bool:
        return self.config.minify == "v2-diff"

    def dump(self, packages: Iterable[Union[Package, Dict[str, Any]]]) -> BuildResult:
        """
        Run one build.

        Order matters: every artifact is written before the manifest that
        references it, and nothing is deleted until the manifest is replaced.
        A build that fails part-way leaves the previous manifest and all the
        files it points at in place.
        """
        started_at = datetime.now(timezone.utc)
        listing = normalize_packages(packages)
        self._check_encodable(listing)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        state = self.state_store.load()
        writer = ArtifactWriter(self.output_dir, self.config.pretty_print)
        artifacts: List[IncludeArtifact] = []

        repo: Dict[str, Any] = {"packages": {}}
        if self.config.providers:
            uids = UidRegistry(state)
            repo["providers-url"] = prefixed_url(self.config.homepage, PROVIDERS_URL)
            repo["providers"] = self._dump_providers(listing, writer, uids, artifacts)
            uids.apply(state)
        else:
            include = writer.write({"packages": listing}, self.config.include_filename, "sha1")
            artifacts.append(include)
            repo["includes"] = include.reference()

        repo["metadata-url"] = prefixed_url(self.config.homepage, METADATA_URL)
        self._dump_metadata(listing, writer, artifacts)

        if self.config.available_package_patterns:
            repo["available-package-patterns"] = list(self.config.available_package_patterns)
        else:
            repo["available-packages"] = list(listing)

        if self.config.notify_batch is not None:
            repo["notify-batch"] = self.config.notify_batch
        if self.config.search is not None:
            repo["search"] = self.config.search
        if self.minified:
            repo["minified"] = MINIFY_ALGORITHM_V2

        new_urls = [artifact.url for artifact in artifacts]
        keep = set(new_urls)
        candidates = merge_paths(state.artifacts, state.stale, self._orphans(listing, keep))
        state.artifacts = new_urls
        state.stale = [url for url in candidates if url not in keep]
        self.state_store.save(state)

        manifest_written, manifest_sha1 = self._write_manifest(repo)

        pruned, failures = self.pruner.prune(state.stale)
        state.stale = failures
        try:
            self.state_store.save(state)
        except StorageError as e:
            # Already-deleted paths are harmless to retry, the build itself succeeded.
            logger.warning(f"Could not record pruning results: {e}")

        written = list(writer.written)
        if manifest_written:
            written.append(MANIFEST_FILENAME)

        return BuildResult(
            manifest_path=str(self.filename),
            manifest_sha1=manifest_sha1,
            artifacts=len(artifacts),
            written=written,
            pruned=pruned,
            prune_failures=failures,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _check_encodable(listing: PackageListing) -> None:
        """Fail before anything is written if a package cannot be serialized."""
        for name, versions in listing.items():
            try:
                encode_json(versions, pretty=False)
            except (TypeError, ValueError) as e:
                raise SerializationError(f"Cannot encode package {name}: {e}") from e

    def _dump_providers(
        self,
        listing: PackageListing,
        writer: ArtifactWriter,
        uids: UidRegistry,
        artifacts: List[IncludeArtifact],
    ) -> Dict[str, Dict[str, str]]:
        """
        Write one provider file per package, holding its versions and the
        versions of every package that replaces it.
        """
        with_uids: PackageListing = {}
        for name, versions in listing.items():
            with_uids[name] = {}
            for version, record in versions.items():
                record_hash = content_hash(encode_json(record, pretty=False).encode("utf-8"), "sha1")
                with_uids[name][version] = {**record, "uid": uids.uid_for(name, record_hash)}

        providers: Dict[str, Dict[str, str]] = {}
        for name, versions in with_uids.items():
            dump_packages = find_replacements(with_uids, name)
            dump_packages[name] = versions
            artifact = writer.write({"packages": dump_packages}, package_url(PROVIDERS_URL, name), "sha256")
            artifacts.append(artifact)
            providers[name] = {artifact.algorithm: artifact.hash}
        return providers

    def _dump_metadata(
        self,
        listing: PackageListing,
        writer: ArtifactWriter,
        artifacts: List[IncludeArtifact],
    ) -> None:
        """
        Write the name-addressed ``p2/<name>.json`` and ``p2/<name>~dev.json`` files.
        """
        for name, versions in listing.items():
            stable, dev = split_stability(versions)
            for suffix, records in (("", stable), ("~dev", dev)):
                if self.minified:
                    payload = {"packages": {name: minify(records)}, "minified": MINIFY_ALGORITHM_V2}
                else:
                    payload = {"packages": {name: records}}
                artifacts.append(writer.write(payload, package_url(METADATA_URL, name + suffix), "sha1"))

    def _orphans(self, listing: PackageListing, keep: set) -> List[str]:
        orphans = self.pruner.find_orphans(self.config.include_filename, 40, keep)
        if self.config.providers:
            for name in listing:
                orphans.extend(self.pruner.find_orphans(package_url(PROVIDERS_URL, name), 64, keep))
        return orphans

    def _write_manifest(self, repo: Dict[str, Any]) -> tuple[bool, str]:
        """
        Replace the root manifest. Returns (written, sha1).

        Unchanged bytes are not rewritten.
        """
        data = encode_json(repo, self.config.pretty_print).encode("utf-8")
        digest = content_hash(data, "sha1")
        try:
            if self.filename.is_file() and self.filename.read_bytes() == data:
                logger.debug(f"Unchanged: {MANIFEST_FILENAME}")
                return False, digest
            logger.info(f"Writing {MANIFEST_FILENAME}")
            write_atomic(self.filename, data)
        except OSError as e:
            raise StorageError(f"Could not write file {self.filename}: {e}") from e
        return True, digest
