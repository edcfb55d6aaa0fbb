"""
Pydantic models for the metadata mirror.

This module defines the data models used throughout the builder, including:
- Mirror configuration (accepting the dashed key spellings of ``satis.json``)
- Package records handed over by the resolver
- Build artifacts, persisted build state and build results

All models use Pydantic for validation and serialization.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Type alias for the supported minification schemes
MinifyMode = Literal["none", "v2-diff"]

# Type alias for the digests used to address artifacts
HashAlgorithm = Literal["sha1", "sha256"]

DEFAULT_INCLUDE_FILENAME = "include/all$%hash%.json"


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class RepositorySource(BaseModel):
    """
    An upstream repository entry as listed in the configuration file.

    Only ``type`` and ``url`` are interpreted here; any other keys are kept
    so the organisation scanner can write the file back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(description="Repository type, e.g. 'vcs' or 'composer'.")
    url: str = Field(description="Repository URL.")


class MirrorConfig(BaseModel):
    """
    Top-level configuration for the mirror builder.

    Keys use the dashed spellings of Satis-style configuration files
    (``notify-batch``, ``pretty-print`` ...); the snake_case field names are
    accepted as well.

    Persisted at: <DATA_DIR>/mirror.json (or mirror.yaml)
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(
        default="packmirror",
        description="Human-friendly repository name.",
    )
    homepage: Optional[str] = Field(
        default=None,
        description="Public base URL of the mirror. Its path is used to prefix the URL templates.",
    )
    output_dir: Optional[str] = Field(
        default=None,
        alias="output-dir",
        description="Directory the mirror is written to. Defaults to <DATA_DIR>/public.",
    )
    providers: bool = Field(
        default=False,
        description="If True, emit the legacy 'providers' layout instead of 'includes'.",
    )
    notify_batch: Optional[str] = Field(
        default=None,
        alias="notify-batch",
        description="URL clients notify after installs. Passed through verbatim.",
    )
    search: Optional[str] = Field(
        default=None,
        description="Search URL template. Passed through verbatim.",
    )
    pretty_print: bool = Field(
        default=True,
        alias="pretty-print",
        description="Indent JSON output. Disable for smaller files.",
    )
    include_filename: str = Field(
        default=DEFAULT_INCLUDE_FILENAME,
        alias="include-filename",
        description="Include file name in non-provider mode. Without '%hash%' the name is used verbatim.",
    )
    minify: MinifyMode = Field(
        default="none",
        description="Scheme for the p2/ files: 'none' for full records, 'v2-diff' for carry-forward diffs.",
    )
    available_package_patterns: List[str] = Field(
        default_factory=list,
        alias="available-package-patterns",
        description="If set, replaces the 'available-packages' list in the root manifest.",
    )
    repositories: List[RepositorySource] = Field(
        default_factory=list,
        description="Upstream repositories, maintained by the organisation scanner.",
    )
    rebuild_interval: int = Field(
        default=0,
        ge=0,
        alias="rebuild-interval",
        description="Seconds between background rebuilds. 0 disables the background loop.",
    )

    @field_validator("include_filename")
    @classmethod
    def _hash_only_in_basename(cls, value: str) -> str:
        dirname, _, _ = value.lstrip("/").rpartition("/")
        if "%hash%" in dirname:
            raise ValueError("%hash% may only appear in the file name, not in a directory")
        return value


# ---------------------------------------------------------------------------
# Package Models
# ---------------------------------------------------------------------------


class Package(BaseModel):
    """
    A single resolved package version.

    Anything beyond the identifying fields lives in the open attribute bag
    (pydantic extras) and is carried through untouched, in its original key
    order.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(description="Package name, e.g. 'vendor/name'.")
    version: str = Field(description="Pretty version string, e.g. '1.0' or 'dev-main'.")
    version_normalized: str = Field(description="Normalized version, e.g. '1.0.0.0'.")
    type: str = Field(default="library", description="Package type.")

    @property
    def attributes(self) -> Dict[str, Any]:
        return dict(self.__pydantic_extra__ or {})

    def dump(self) -> Dict[str, Any]:
        """
        Return the version record as it is written to artifacts.
        """
        record: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "version_normalized": self.version_normalized,
            "type": self.type,
        }
        for key, value in self.attributes.items():
            if key not in record:
                record[key] = value
        return record


# name -> pretty version -> record, in first-seen order
PackageListing = Dict[str, Dict[str, Dict[str, Any]]]


# ---------------------------------------------------------------------------
# Build Models
# ---------------------------------------------------------------------------


class IncludeArtifact(BaseModel):
    """
    A file written (or confirmed unchanged) by the artifact writer.
    """

    url: str = Field(description="Path of the file relative to the output directory.")
    algorithm: HashAlgorithm = Field(description="Digest used for the content hash.")
    hash: str = Field(description="Hex digest of the file's bytes.")
    written: bool = Field(
        default=False,
        description="True if the file was created or its content changed in this build.",
    )

    def reference(self) -> Dict[str, Dict[str, str]]:
        """Manifest entry for this artifact: ``{url: {algorithm: hash}}``."""
        return {self.url: {self.algorithm: self.hash}}


class BuildState(BaseModel):
    """
    State carried from one build to the next.

    Persisted at: <OUTPUT_DIR>/.build-state.json
    """

    uids: Dict[str, int] = Field(
        default_factory=dict,
        description="Provider uid per '<package>#<record sha1>' key.",
    )
    next_uid: int = Field(
        default=1,
        ge=1,
        description="Next uid to hand out. Never decreases.",
    )
    artifacts: List[str] = Field(
        default_factory=list,
        description="Paths referenced by the last committed manifest.",
    )
    stale: List[str] = Field(
        default_factory=list,
        description="Paths awaiting deletion, including deletions that failed earlier.",
    )


class BuildResult(BaseModel):
    """
    Summary of a finished build.
    """

    manifest_path: str
    manifest_sha1: str
    artifacts: int = 0
    written: List[str] = Field(default_factory=list)
    pruned: List[str] = Field(default_factory=list)
    prune_failures: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
