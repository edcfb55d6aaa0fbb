import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.staticfiles import StaticFiles

from packmirror import __version__
from packmirror.api.admin import router as admin_router
from packmirror.core.dependencies import get_build_runner, get_config, get_output_dir
from packmirror.services.build_runner import periodic_rebuild_loop

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Hash-addressed files never change, everything else must be revalidated.
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
REVALIDATE_CACHE_CONTROL = "public, no-cache"


def cache_control_for(path: str) -> str:
    """
    Content-addressed artifacts (``include/all$<hash>.json``,
    ``p/<name>$<hash>.json``) can be cached forever; the manifest and the
    name-addressed p2/ files cannot.
    """
    if "$" in PurePosixPath(path).name:
        return IMMUTABLE_CACHE_CONTROL
    return REVALIDATE_CACHE_CONTROL


class MirrorStaticFiles(StaticFiles):
    """
    Serves the output directory. Dotfiles (build state, lock) stay private.
    """

    async def get_response(self, path: str, scope):
        if any(part.startswith(".") for part in PurePosixPath(path).parts):
            raise HTTPException(status_code=404)
        response = await super().get_response(path, scope)
        if response.status_code == 200:
            response.headers["Cache-Control"] = cache_control_for(path)
        return response


def create_app(output_dir: Optional[Path] = None) -> FastAPI:
    app = FastAPI(
        title="packmirror",
        version=__version__,
        description="Static package metadata mirror with build endpoints.",
    )

    @app.on_event("startup")
    async def startup_event() -> None:
        """
        Start the periodic rebuild when an interval is configured.
        """
        interval = get_config().rebuild_interval
        if interval > 0:
            logger.info(f"Rebuilding every {interval} seconds")
            asyncio.create_task(periodic_rebuild_loop(get_build_runner(), interval))

    @app.get("/health")
    async def health() -> dict:
        """
        Lightweight health check endpoint.
        """
        return {"status": "ok"}

    app.include_router(admin_router, tags=["admin"])

    directory = output_dir or get_output_dir()
    directory.mkdir(parents=True, exist_ok=True)

    # Mounted last so the routes above take precedence.
    app.mount(
        "/",
        MirrorStaticFiles(directory=str(directory)),
        name="mirror",
    )
    return app


app = create_app()


if __name__ == "__main__":
    """
    Allow running `python -m packmirror.main` to start the Uvicorn development server.
    """
    import uvicorn

    uvicorn.run(
        "packmirror.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
