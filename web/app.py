"""
FastAPI application setup for the EduPortal data API.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from eduportal import __version__ as EDUPORTAL_VERSION
from eduportal.facade import DataService, open_data_service

from .routes import router

# Load .env file (if present) so EDUPORTAL_* settings are available via os.environ
load_dotenv()

logger = logging.getLogger(__name__)


def create_app(service: Optional[DataService] = None,
               data_dir: Optional[Path] = None) -> FastAPI:
    """Build the app.

    With *service*, the caller owns it and must have initialised it;
    otherwise one is opened under *data_dir* (or the configured data
    directory) at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is not None:
            app.state.data_service = service
            yield
            return

        owned = await open_data_service(data_dir)
        logger.info("Data service ready (migration state: %s)", owned.migration_state.value)
        app.state.data_service = owned
        try:
            yield
        finally:
            await owned.close()

    app = FastAPI(
        title="EduPortal",
        description="Video catalog, accounts and watch-state API",
        version=EDUPORTAL_VERSION,
        lifespan=lifespan,
    )
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": EDUPORTAL_VERSION}

    return app


app = create_app()
