from pathlib import Path
from typing import Optional

from packmirror.data.config import get_data_dir, load_config, resolve_output_dir
from packmirror.domain.models import MirrorConfig
from packmirror.services.build_runner import BuildRunner
from packmirror.services.builder import PackagesBuilder
from packmirror.storage.package_source import JsonPackageSource, PackageSource

_config: Optional[MirrorConfig] = None
_package_source: Optional[PackageSource] = None
_build_runner: Optional[BuildRunner] = None


def get_config() -> MirrorConfig:
    global _config
    if _config is None:
        _config = load_config(get_data_dir())
    return _config


def get_output_dir() -> Path:
    d = resolve_output_dir(get_config(), get_data_dir())
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_package_source() -> PackageSource:
    global _package_source
    if _package_source is None:
        _package_source = JsonPackageSource(get_data_dir() / "packages")
    return _package_source


def get_build_runner() -> BuildRunner:
    global _build_runner
    if _build_runner is None:
        builder = PackagesBuilder(get_output_dir(), get_config())
        _build_runner = BuildRunner(get_package_source(), builder)
    return _build_runner
