"""Health check endpoints for monitoring and deployment verification."""

import time

from fastapi import APIRouter, Response, status

from src.api.middleware.latency_logging import get_latency_stats
from src.core.supabase import check_database_connection
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse
from src.services.checkout_reconciler import get_checkout_reconciler

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic health check to verify the service is running. Used for liveness checks.",
)
async def health_check() -> HealthResponse:
    """Return basic health status.

    This endpoint should always return 200 if the service is running.
    It does not check external dependencies.

    Returns:
        HealthResponse: Current health status with timestamp.
    """
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "All dependencies healthy"},
        503: {"description": "One or more dependencies unhealthy"},
    },
    summary="Readiness check",
    description="Check if all dependencies are available. Used for readiness checks.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Check readiness of all dependencies.

    Verifies database connectivity (Supabase). Returns 503 if any
    dependency is unhealthy.

    Args:
        response: FastAPI response object for setting status code.

    Returns:
        ReadinessResponse: Status of all dependency checks.
    """
    checks: list[CheckResult] = []

    start_time = time.perf_counter()
    db_result = await check_database_connection()
    latency_ms = (time.perf_counter() - start_time) * 1000

    checks.append(
        CheckResult(
            name="database",
            healthy=db_result["healthy"],
            latency_ms=round(latency_ms, 2),
            error=db_result.get("error"),
        )
    )

    all_healthy = all(check.healthy for check in checks)
    overall_status = HealthStatus.HEALTHY if all_healthy else HealthStatus.UNHEALTHY

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(status=overall_status, checks=checks)


@router.get(
    "/health/reconciler",
    summary="Checkout reconciliation status",
    description="Counts from the last reconciliation run, by resulting intent state.",
)
async def reconciler_check() -> dict:
    """Report the checkout reconciler's configuration and last run."""
    reconciler = get_checkout_reconciler()
    return {
        "enabled": reconciler.config.enabled,
        "interval_seconds": reconciler.config.interval_seconds,
        "intent_timeout_seconds": reconciler.config.intent_timeout_seconds,
        "last_run": reconciler.last_run,
    }


@router.get(
    "/health/latency",
    summary="Request latency stats",
    description="Aggregated latency of recent non-health requests, overall and per route.",
)
async def latency_check() -> dict:
    """Report recent request latencies."""
    stats = get_latency_stats()
    return {**stats.get_stats(), "by_path": stats.get_stats_by_path()}
