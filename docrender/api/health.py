"""
Health check endpoint for DocRender.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from docrender import __version__
from docrender.schemas.render import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint for container orchestration.

    Checks:
    - Redis connection (lock store)
    - Render backend readiness
    - Registered templates

    Returns 503 while the worker is starting or a dependency is unhealthy.
    """
    context = getattr(request.app.state, "render_context", None)
    now = datetime.now(timezone.utc)

    if context is None:
        body = HealthResponse(
            status="unhealthy",
            uptime_seconds=0.0,
            timestamp=now,
            version=__version__,
            checks={},
        )
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))

    checks = await context.health_checks()
    healthy = context.ready and all(check.status == "healthy" for check in checks.values())

    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        uptime_seconds=context.uptime_seconds,
        timestamp=now,
        version=context.settings.version,
        checks=checks,
    )
    return JSONResponse(
        status_code=200 if healthy else 503,
        content=body.model_dump(mode="json", exclude_none=True),
    )
