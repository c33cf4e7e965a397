"""FastAPI application exposing the cached deals."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .config import Config
from .scheduler import RefreshScheduler
from .service import DealsService

logger = logging.getLogger(__name__)


def create_app(config: Config, service: DealsService | None = None, *, schedule: bool = True) -> FastAPI:
    """Build the app; the service pre-warms before the server accepts requests."""
    service = service or DealsService(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        scheduler = RefreshScheduler(service) if schedule else None
        if scheduler:
            scheduler.start()
        try:
            yield
        finally:
            logger.info("Shutting down...")
            if scheduler:
                scheduler.shutdown()
            await service.stop()

    app = FastAPI(title="game-deals-proxy", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unexpected error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.get("/deals")
    async def get_deals(currency: str = Query("USD", min_length=1, max_length=8)):
        return {"success": True, **service.get_deals(currency)}

    @app.get("/health")
    async def health():
        return service.status()

    return app
