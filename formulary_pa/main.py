"""
FastAPI application entry point.
Builds the app, mounts the single router and seeds the store on startup.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from project root, regardless of where the app is started from
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

from formulary_pa.config import settings
from formulary_pa.exception_handlers import register_exception_handlers
from formulary_pa.init_db import init_db
from formulary_pa.router import router
from formulary_pa.seed import StaticSeedProvider
from formulary_pa.services.pa_analyzer import PAAnalyzer
from formulary_pa.storage.base import FormularyStorage, build_storage

logger = logging.getLogger(__name__)


def create_app(
    storage: Optional[FormularyStorage] = None,
    analyzer: Optional[PAAnalyzer] = None,
    seed_provider: Optional[StaticSeedProvider] = None,
    seed: Optional[bool] = None,
) -> FastAPI:
    """
    Anything not passed in is built from settings. An injected storage is
    taken as-is and is not seeded unless seed=True.
    """
    if seed is None:
        seed = settings.SEED_ON_STARTUP and storage is None

    storage = storage or build_storage(settings)
    analyzer = analyzer or PAAnalyzer()
    seed_provider = seed_provider or StaticSeedProvider()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if seed:
            if init_db(storage, seed_provider):
                logger.info("Seeded default provider, formulary and medications")
        else:
            storage.ensure_schema()
        yield

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
    app.state.storage = storage
    app.state.analyzer = analyzer
    app.state.seed_provider = seed_provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router, prefix="/api")

    @app.get("/")
    def read_root():
        return {"message": f"{settings.PROJECT_NAME} is running"}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("formulary_pa.main:app", host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
