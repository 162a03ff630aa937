"""
Roast Studio service entry point
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from roast_studio.api import api_router
from roast_studio.core.config import settings
from roast_studio.core.database import SessionLocal, init_db
from roast_studio.services.audio_storage import audio_dir
from roast_studio.services.lifecycle_service import LifecycleService, run_controller_loop
from roast_studio.services.websocket_service import publish_round_state

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema, run one controller tick, then keep the controller running"""
    logger.info("Starting %s v%s", settings.APP_NAME, settings.VERSION)
    await init_db()

    db = SessionLocal()
    try:
        result = await LifecycleService(db).tick()
        logger.info("Startup tick: %s", result)
    except Exception:
        logger.exception("Startup controller tick failed; the background job will retry")
    finally:
        db.close()

    controller = asyncio.create_task(run_controller_loop(SessionLocal, on_change=publish_round_state))
    try:
        yield
    finally:
        controller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await controller
        logger.info("Lifecycle controller stopped")


def create_app() -> FastAPI:
    """Build the FastAPI application"""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Live roast show: rounds, submissions, synchronized playback and archives",
        version=settings.VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api")
    app.mount(settings.MEDIA_URL_PREFIX, StaticFiles(directory=str(audio_dir())), name="media")

    @app.get("/")
    async def root():
        """Root health check"""
        return {"message": f"{settings.APP_NAME} is running", "status": "healthy"}

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "roast-studio"}

    return app


app = create_app()


def run():
    """Console entry point"""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    uvicorn.run(
        "roast_studio.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )


if __name__ == "__main__":
    run()
