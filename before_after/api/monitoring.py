"""Health check and metrics endpoints."""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from .. import __version__
from ..config import MonitoringConfig
from ..database.operations import DatabaseOperations
from ..models.api_models import HealthCheckResponse, StatisticsResponse

logger = logging.getLogger(__name__)


def create_monitoring_router(config: MonitoringConfig) -> APIRouter:
    """Build a router serving only the monitoring endpoints that are enabled."""
    router = APIRouter()

    if config.health_check.enabled:
        router.add_api_route(
            config.health_check.path,
            health_check,
            methods=["GET"],
            response_model=HealthCheckResponse,
            tags=["health"],
            summary="Health Check",
            description="Check the health status of the API and its database",
        )

    if config.metrics.enabled:
        router.add_api_route(
            config.metrics.path,
            metrics,
            methods=["GET"],
            response_model=StatisticsResponse,
            tags=["metrics"],
            summary="System Metrics",
            description="Card and loss GIF counts, upload attempts and storage usage",
        )

    return router


async def health_check(request: Request) -> HealthCheckResponse:
    """Report whether the card database answers queries."""
    try:
        request.app.state.db_manager.get_stats()
        db_status = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        db_status = "error"

    return HealthCheckResponse(
        status="healthy" if db_status == "connected" else "unhealthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        database=db_status,
    )


async def metrics(request: Request) -> StatisticsResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops
    storage = request.app.state.storage

    # Only the filesystem backend can report its usage
    storage_stats: dict[str, Any] = {}
    if hasattr(storage, "get_storage_stats"):
        storage_stats = storage.get_storage_stats()

    return StatisticsResponse(**db_ops.get_statistics(), storage=storage_stats)
