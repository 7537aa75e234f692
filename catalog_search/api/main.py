"""
FastAPI Main Application
Entry point for the Catalog Search API.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from ..caching import close_redis_cache
from ..config.settings import get_settings
from ..db.session import dispose_engine
from ..errors import CatalogSearchError
from ..search import ProductIndex, close_es_client
from .errors import setup_error_handlers
from .middleware import RequestLoggingMiddleware, RequestTimingMiddleware
from .routers import admin_router, clicks_router, health_router, search_router

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Makes sure the product index exists on startup and releases the
    Elasticsearch, Redis and database clients on shutdown.
    """
    settings = get_settings()
    logger.info(f"Starting {settings.app_name}...")

    try:
        if ProductIndex().ensure_index():
            logger.info("Created initial product index")
    except CatalogSearchError as e:
        # Search answers 503 until Elasticsearch is reachable
        logger.error(f"Could not verify product index on startup: {e}")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    close_es_client()
    close_redis_cache()
    dispose_engine()


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=settings.description,
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time", "X-Result-Count"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    setup_error_handlers(app)

    app.include_router(health_router)
    app.include_router(search_router)
    app.include_router(clicks_router)
    app.include_router(admin_router)

    @app.get("/")
    def root():
        return {
            "name": settings.app_name,
            "version": settings.version,
            "description": settings.description,
            "endpoints": {
                "search": "/api/v1/search",
                "suggestions": "/api/v1/search/suggestions",
                "trending": "/api/v1/search/trending",
                "clicks": "/api/v1/search/clicks",
                "admin": "/api/v1/admin",
                "health": "/health",
                "status": "/status",
                "docs": "/docs",
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "catalog_search.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
