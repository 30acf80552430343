"""
FastAPI Application Entry Point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .config import settings
from .services.persistence import get_repository

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    repository = get_repository()
    logger.info(
        f"Trip conductor starting: llm={settings.llm_provider}, storage={settings.storage_backend}, "
        f"subscription={settings.subscription_status}, saved plans={repository.count_plans()}"
    )
    yield
    logger.info("Trip conductor stopped")


app = FastAPI(
    title="Trip Conductor",
    description="Trip draft wizard, AI plan generation and confirmed plan edits",
    version="1.0.0",
    lifespan=lifespan,
)

# The wizard UI is served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "llm_provider": settings.llm_provider,
        "storage": settings.storage_backend,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "conductor.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
