"""
Health check endpoints.

- /health: liveness (is the process running?)
- /health/ready: readiness (can we serve traffic?)

The distinction matters in orchestration systems where liveness and
readiness have different behaviors.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ...infrastructure.kv.client import KeyValueStore, KeyValueStoreError
from ..dependencies import SettingsDep, get_kv_store

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "supabase": settings.supabase_mock_mode,
                "storage": settings.storage_mock_mode,
            }
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic, 503 otherwise.",
    responses={503: {"description": "Service not ready", "model": ReadinessResponse}},
)
async def readiness_check(
    settings: SettingsDep,
    store: KeyValueStore = Depends(get_kv_store),
):
    """
    Readiness check - can we serve traffic?

    Checks configuration and that the key-value store answers a trivial
    query. Storage is reported by mode only; listing buckets on every
    probe would be wasteful.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}",
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    try:
        await store.ping()
        checks.append(ReadinessCheck(
            name="kv_store",
            status="ok",
            error="mock mode" if settings.supabase_mock_mode else None,
        ))
    except KeyValueStoreError as e:
        logger.error("Key-value store health check failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(name="kv_store", status="error", error=str(e)))

    checks.append(ReadinessCheck(
        name="storage",
        status="ok",
        error="mock mode" if settings.storage_mock_mode else None,
    ))

    all_ok = all(check.status == "ok" for check in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={"checks": [c.model_dump() for c in checks]}
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
