"""
Common dependencies for DocRender API endpoints.

Provides the worker's render context to route handlers.
"""

from fastapi import HTTPException, Request, status

from docrender.context import RenderContext


async def get_render_context(request: Request) -> RenderContext:
    """
    Render context dependency.

    The context is created by the application lifespan. Until it has
    finished starting up, requests are refused with 503.

    Usage:
        @router.post("/generate-pdf")
        async def generate(context: RenderContext = Depends(get_render_context)):
            ...

    Raises:
        HTTPException 503: If the worker is not ready yet
    """
    context = getattr(request.app.state, "render_context", None)
    if context is None or not context.ready:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "not_ready",
                "message": "Service is starting up",
            },
        )
    return context


__all__ = ["get_render_context"]
