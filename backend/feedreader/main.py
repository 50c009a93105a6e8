from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from feedreader.api import articles, feeds
from feedreader.core.config import settings
from feedreader.core.logging import configure_logging
from feedreader.lifecycle import LifecycleController

# Configure logging
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app(controller: LifecycleController = None) -> FastAPI:
    """Build the API around a lifecycle controller"""
    controller = controller or LifecycleController(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle manager for the FastAPI app"""
        # Startup
        logger.info("Starting Feed Reader API")
        await controller.start()
        app.state.database = controller.database
        app.state.store = controller.store
        app.state.worker = controller.worker
        app.state.scheduler = controller.scheduler

        yield

        # Shutdown
        logger.info("Shutting down Feed Reader API")
        await controller.stop()

    app = FastAPI(
        title="Feed Reader API",
        description="""
## Feed Reader Backend API

Aggregates RSS feeds into a relational store and exposes the entries.

### Features

* **Feed Management**: Register, update and delete feed subscriptions
* **Background Polling**: Every registered feed is polled on a fixed interval
* **Deduplication**: An entry is stored once per feed, keyed on its link
* **Sanitized Content**: Entry bodies are reduced to a safe HTML subset
* **Read Tracking**: Mark articles read or unread
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {
                "name": "Feeds",
                "description": "Register feeds, update polling settings, and delete feeds with their articles."
            },
            {
                "name": "Articles",
                "description": "Read, search and manage ingested articles."
            },
        ]
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,  # Frontend URLs
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(feeds.router)
    app.include_router(articles.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        scheduler = getattr(app.state, "scheduler", None)
        return {
            "status": "healthy",
            "scheduler": scheduler.state.value if scheduler else None,
        }

    return app


app = create_app()
