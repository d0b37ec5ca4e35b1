"""
DocRender API

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI

from docrender.api import api_router
from docrender.context import RenderContext
from docrender.core.config import Settings, get_settings
from docrender.core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    context_factory: Optional[Callable[[Settings], RenderContext]] = None,
) -> FastAPI:
    """
    Return a configured FastAPI application.

    The render context is built and started inside the lifespan, so the
    server accepts no requests before templates are registered and the
    render backend is running.

    Args:
        settings: Settings to use (defaults to environment settings)
        context_factory: Builds the render context (defaults to RenderContext.from_settings)
    """
    settings = settings or get_settings()
    configure_logging(settings)
    build_context = context_factory or RenderContext.from_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Initializing render context...")
        context = build_context(settings)
        await context.startup()
        app.state.render_context = context
        try:
            yield
        finally:
            app.state.render_context = None
            await context.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="Idempotent template-to-PDF rendering service",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.render_context = None

    app.include_router(api_router)
    return app


app = create_app()
