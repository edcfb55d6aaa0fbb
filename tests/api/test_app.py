"""Tests for the HTTP surface: static mirror and build endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import List

from fastapi.testclient import TestClient

from packmirror.core.dependencies import get_build_runner
from packmirror.domain.models import MirrorConfig, Package
from packmirror.main import IMMUTABLE_CACHE_CONTROL, REVALIDATE_CACHE_CONTROL, cache_control_for, create_app
from packmirror.services.build_runner import BuildLock, BuildRunner
from packmirror.services.builder import PackagesBuilder
from packmirror.storage.package_source import StaticPackageSource
from tests._fixtures.packages import make_packages


def _client(output_dir: Path, packages: List[Package]) -> TestClient:
    runner = BuildRunner(StaticPackageSource(packages), PackagesBuilder(output_dir, MirrorConfig()))
    app = create_app(output_dir)
    app.dependency_overrides[get_build_runner] = lambda: runner
    return TestClient(app)


def test_health(output_dir: Path) -> None:
    client = _client(output_dir, make_packages(1))

    assert client.get("/health").json() == {"status": "ok"}


def test_build_then_serve_the_mirror(output_dir: Path) -> None:
    client = _client(output_dir, make_packages(1))

    response = client.post("/admin/build")
    assert response.status_code == 200
    assert response.json()["artifacts"] == 3

    manifest = client.get("/packages.json")
    assert manifest.status_code == 200
    assert manifest.headers["cache-control"] == REVALIDATE_CACHE_CONTROL

    include_url = next(iter(manifest.json()["includes"]))
    include = client.get(f"/{include_url}")
    assert include.status_code == 200
    assert include.headers["cache-control"] == IMMUTABLE_CACHE_CONTROL
    assert include.json()["packages"]["vendor/name"]["1.0"]["version_normalized"] == "1.0.0.0"

    assert client.get("/p2/vendor/name.json").status_code == 200


def test_build_state_is_not_served(output_dir: Path) -> None:
    client = _client(output_dir, make_packages(1))
    client.post("/admin/build")

    assert (output_dir / ".build-state.json").is_file()
    assert client.get("/.build-state.json").status_code == 404


def test_build_status(output_dir: Path) -> None:
    client = _client(output_dir, make_packages(1))

    assert client.get("/admin/build").json() == {"running": False, "last_result": None}

    client.post("/admin/build")
    status = client.get("/admin/build").json()
    assert status["running"] is False
    assert status["last_result"]["manifest_path"].endswith("packages.json")


def test_build_conflict_while_locked(output_dir: Path) -> None:
    client = _client(output_dir, make_packages(1))

    with BuildLock(output_dir):
        response = client.post("/admin/build")

    assert response.status_code == 409


def test_invalid_packages_are_rejected(output_dir: Path) -> None:
    client = _client(output_dir, [Package(name="../escape", version="1.0", version_normalized="1.0.0.0")])

    response = client.post("/admin/build")

    assert response.status_code == 422
    assert "Invalid package name" in response.json()["detail"]


def test_cache_control_for() -> None:
    assert cache_control_for("include/all$abc.json") == IMMUTABLE_CACHE_CONTROL
    assert cache_control_for("p/vendor/name$abc.json") == IMMUTABLE_CACHE_CONTROL
    assert cache_control_for("p2/vendor/name.json") == REVALIDATE_CACHE_CONTROL
    assert cache_control_for("packages.json") == REVALIDATE_CACHE_CONTROL
