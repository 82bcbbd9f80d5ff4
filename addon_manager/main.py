import logging

from fastapi import FastAPI

from addon_manager.api.addons import router as addons_router
from addon_manager.core.dependencies import get_manifest_manager, get_settings
from addon_manager.domain.errors import StorageError
from addon_manager.domain.models import GameVersion

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="WoW Add-on Manager",
    version="0.1.0",
    description="Tracks installed World of Warcraft add-ons and keeps them in step with the catalog.",
)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Load settings (creating the config directory, which is fatal on failure)
    and make sure every configured add-on directory has a manifest.
    """
    settings = get_settings()
    try:
        logging.getLogger().setLevel(settings.log_level.upper())
    except ValueError:
        logger.warning(f"Unknown log level {settings.log_level!r}, keeping INFO")

    store = get_manifest_manager()
    for game_version in GameVersion:
        root = settings.root_for(game_version)
        if not root:
            logger.warning(f"No add-on directory configured for {game_version.value}")
            continue
        try:
            store.initialize(root)
            logger.info(f"{game_version.value.capitalize()} add-on directory successfully loaded.")
        except StorageError as e:
            logger.error(f"Couldn't load {game_version.value} add-on directory.\n{e}")


@app.get("/health")
async def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


app.include_router(addons_router, prefix="/addons", tags=["addons"])


if __name__ == "__main__":
    """
    Allow running `python -m addon_manager.main` to start the Uvicorn
    development server.
    """
    import uvicorn

    uvicorn.run(
        "addon_manager.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
