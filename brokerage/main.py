from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from brokerage.config import Settings, load_settings
from brokerage.core.dependencies import build_container
from brokerage.api import health, monitor, notifications, orders, tasks
from contextlib import asynccontextmanager
from typing import Optional
import logging
import os

# Use LOG_LEVEL from environment, default to INFO
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build an application with its own engine and stores"""
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        container = await build_container(settings)
        app.state.container = container

        if settings.run_worker:
            await container.engine.start()
            logger.info("Workflow service started - worker running")
        else:
            logger.info("Workflow service started without worker")

        yield

        logger.info("Workflow service shutting down")
        await container.close()

    app = FastAPI(
        title="Brokerage Order Workflow",
        description="Order status workflow engine for exchange transfer orders",
        version="0.1.0",
        lifespan=lifespan)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(orders.router)
    app.include_router(monitor.router)
    app.include_router(tasks.router)
    app.include_router(notifications.router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("brokerage.main:app", host="0.0.0.0", port=8000, reload=True)
