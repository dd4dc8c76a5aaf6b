"""FastAPI application factory for the card game backend."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Config, setup_logging
from ..database import DatabaseManager, DatabaseOperations
from ..exceptions import FileSizeError, InvalidImageTypeError
from ..middleware import RateLimitMiddleware
from ..middleware.security import SecurityHeadersMiddleware
from ..middleware.validation import RequestValidationMiddleware
from ..utils.object_storage import create_storage
from .admin import router as admin_router
from .cards import router as cards_router
from .loss_gifs import router as loss_gifs_router
from .monitoring import create_monitoring_router

logger = logging.getLogger(__name__)

DESCRIPTION = """## Before or After? Game Backend

Serves cards for a guessing game where players decide whether an item
(movie, album, game, ...) was released before or after the previous one.

### API Sections
- **Cards** - Draw random cards and check guesses
- **Loss GIFs** - GIF shown at the end of a game, chosen by final score
- **Admin** - Manage cards and loss GIFs, including image upload
  (`X-API-Key` header required)
- **Health** - Service health monitoring
- **Metrics** - Content and upload statistics
"""

OPENAPI_TAGS = [
    {"name": "cards", "description": "Card drawing and guess checking"},
    {"name": "loss-gifs", "description": "End of game GIFs"},
    {"name": "admin", "description": "Content management endpoints"},
    {"name": "health", "description": "Health check endpoints"},
    {"name": "metrics", "description": "Statistics and metrics endpoints"},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Open the database and image storage for the lifetime of the app."""
    config: Config = app.state.config
    logger.info("Starting BeforeAfterAPI...")

    db_manager = DatabaseManager(
        config.database.path,
        enable_wal=config.database.enable_wal,
        echo=config.server.debug,
    )
    app.state.db_manager = db_manager
    app.state.db_ops = DatabaseOperations(db_manager)

    # A storage installed before startup (tests) is kept
    if app.state.storage is None:
        app.state.storage = create_storage(config.storage)
    logger.info(f"Image storage backend: {type(app.state.storage).__name__}")

    try:
        yield
    finally:
        logger.info("Shutting down BeforeAfterAPI...")
        db_manager.close()


def create_app(
    config_path: str = "config.yaml", override_config: Config | None = None
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config_path: Path to configuration file
        override_config: Optional config object to use instead of loading from file

    Returns:
        Configured FastAPI app
    """
    config = override_config or Config.load_from_file(config_path)
    setup_logging(config.logging)

    app = FastAPI(
        title="BeforeAfterAPI",
        description=DESCRIPTION,
        version=__version__,
        docs_url="/docs" if config.server.enable_docs else None,
        redoc_url="/redoc" if config.server.enable_docs else None,
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.storage = None

    _install_middleware(app, config)
    _install_exception_handlers(app)

    app.include_router(cards_router)
    app.include_router(loss_gifs_router)
    app.include_router(admin_router)
    app.include_router(create_monitoring_router(config.monitoring))

    return app


def _install_middleware(app: FastAPI, config: Config) -> None:
    # Starlette runs the last added middleware first
    if config.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key"],
        )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RequestValidationMiddleware,
        max_image_size_mb=config.images.max_file_size_mb,
    )

    app.state.rate_limiter = RateLimitMiddleware(app, config)


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidImageTypeError)
    @app.exception_handler(FileSizeError)
    async def image_validation_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Report image validation failures that escape a route as 400s."""
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500, content={"detail": "Internal server error"}
        )
