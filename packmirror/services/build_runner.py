"""
Serializes builds: one at a time per process, and one at a time per output
directory across processes.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

from packmirror.domain.errors import BuildInProgressError
from packmirror.domain.models import BuildResult
from packmirror.services.builder import PackagesBuilder
from packmirror.storage.package_source import PackageSource

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".build.lock"


class BuildLock:
    """
    Exclusive lock file in the output directory.

    The file is created with O_EXCL, so a second builder (in this process or
    another one) fails immediately instead of racing on the manifest and the
    prune step. A lock left behind by a killed process has to be removed by
    hand; its content is the owner's pid.
    """

    def __init__(self, output_dir: Path):
        self.lock_file = output_dir / LOCK_FILENAME
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as e:
            raise BuildInProgressError(f"Another build holds {self.lock_file}") from e
        os.write(self._fd, str(os.getpid()).encode("ascii"))

    def release(self) -> None:
        if self._fd is None:
            return
        os.close(self._fd)
        self._fd = None
        self.lock_file.unlink(missing_ok=True)

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class BuildRunner:
    """Runs builds from a package source, keeping the last result around."""

    def __init__(self, source: PackageSource, builder: PackagesBuilder):
        self.source = source
        self.builder = builder
        self.last_result: Optional[BuildResult] = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run_sync(self) -> BuildResult:
        with BuildLock(self.builder.output_dir):
            packages = self.source.get_packages()
            logger.info(f"Building {len(packages)} package versions into {self.builder.output_dir}")
            result = self.builder.dump(packages)

        logger.info(
            f"Build finished: {len(result.written)} written, {len(result.pruned)} pruned, "
            f"{len(result.prune_failures)} prune failures"
        )
        self.last_result = result
        return result

    async def run(self) -> BuildResult:
        """
        Run a build in a worker thread. Fails fast if one is already running.
        """
        if self._lock.locked():
            raise BuildInProgressError("A build is already running")
        async with self._lock:
            return await asyncio.to_thread(self.run_sync)


async def periodic_rebuild_loop(runner: BuildRunner, interval_seconds: int) -> None:
    """
    Background task that rebuilds the mirror every interval_seconds.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await runner.run()
        except BuildInProgressError as e:
            logger.info(f"Skipping scheduled build: {e}")
        except Exception as e:
            logger.error(f"Scheduled build failed: {e}", exc_info=True)


if __name__ == "__main__":
    import sys

    from packmirror.core.dependencies import get_build_runner

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        result = get_build_runner().run_sync()
        print(f"Wrote {result.manifest_path} ({result.artifacts} artifacts)")
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
