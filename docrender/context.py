"""
Worker-scoped render context.

Everything a pipeline invocation needs that outlives a single request
(Redis client, template registry, image generators, render backend) is
built once at worker startup and passed explicitly to request handlers.
The context only reports ready after startup() has completed.
"""

import logging
import time
from pathlib import Path
from typing import Dict, Optional

from redis.asyncio import Redis

from docrender.core.config import Settings
from docrender.core.redis import check_redis_health, create_redis_client
from docrender.schemas.render import HealthCheck
from docrender.services.compositor import TemplateCompositor, TemplateRegistry
from docrender.services.enricher import ChartRenderer, DataEnricher, QrCodeGenerator
from docrender.services.generators import MatplotlibChartRenderer, QrCodeImageGenerator
from docrender.services.lock import LockCoordinator
from docrender.services.pipeline import PipelineOrchestrator
from docrender.services.renderer import PlaywrightRenderBackend, RenderBackend, RenderRetrier

logger = logging.getLogger(__name__)


class RenderContext:
    """
    Lifecycle-scoped collaborators of the rendering pipeline.

    Usage:
        context = RenderContext.from_settings(settings)
        await context.startup()
        result = await context.orchestrator.run(payload)
        ...
        await context.shutdown()
    """

    def __init__(
        self,
        settings: Settings,
        redis: Redis,
        registry: TemplateRegistry,
        backend: RenderBackend,
        qr_generator: QrCodeGenerator,
        chart_renderer: ChartRenderer,
    ):
        self.settings = settings
        self.redis = redis
        self.registry = registry
        self.backend = backend

        self.locks = LockCoordinator(
            redis,
            ttl_seconds=settings.lock_ttl_seconds,
            key_prefix=settings.lock_key_prefix,
        )
        self.enricher = DataEnricher(qr_generator, chart_renderer)
        self.compositor = TemplateCompositor(registry)
        self.renderer = RenderRetrier(
            backend,
            max_attempts=settings.max_retries,
            min_backoff_seconds=settings.retry_min_backoff_seconds,
        )
        self.orchestrator = PipelineOrchestrator(
            self.locks,
            self.enricher,
            self.compositor,
            self.renderer,
            conflict_retry_after=settings.conflict_retry_after_seconds,
        )

        self.ready = False
        self.started_at: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RenderContext":
        """
        Build the production context: Redis, Jinja2 registry, Playwright, qrcode, matplotlib.

        Reads all templates and fragments from disk.

        Raises:
            TemplateRegistryError: On fragment collisions or template compile errors
        """
        registry = TemplateRegistry.load(
            Path(settings.templates_dir),
            Path(settings.partials_dir),
            settings.fragment_collision_policy,
        )
        return cls(
            settings=settings,
            redis=create_redis_client(settings),
            registry=registry,
            backend=PlaywrightRenderBackend(
                headless=settings.render_headless,
                page_format=settings.page_format,
                timeout_ms=settings.render_timeout_ms,
            ),
            qr_generator=QrCodeImageGenerator(width=settings.qr_width),
            chart_renderer=MatplotlibChartRenderer(
                width=settings.chart_width,
                height=settings.chart_height,
            ),
        )

    async def startup(self) -> None:
        """Connect to the render backend and probe Redis, then mark the context ready."""
        status = await check_redis_health(self.redis)
        if status.healthy:
            logger.info(f"Connected to Redis (latency: {status.latency_ms}ms)")
        else:
            logger.error(f"Redis not reachable at startup: {status.error}")

        await self.backend.start()

        self.started_at = time.monotonic()
        self.ready = True
        logger.info("Render context ready")

    async def shutdown(self) -> None:
        self.ready = False
        try:
            await self.backend.stop()
        finally:
            await self.redis.aclose()
        logger.info("Render context closed")

    @property
    def uptime_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return round(time.monotonic() - self.started_at, 3)

    async def health_checks(self) -> Dict[str, HealthCheck]:
        """Probe each dependency of the pipeline."""
        checks: Dict[str, HealthCheck] = {}

        redis_status = await check_redis_health(self.redis)
        if redis_status.healthy:
            checks["redis"] = HealthCheck(status="healthy", latency_ms=redis_status.latency_ms)
        else:
            checks["redis"] = HealthCheck(status="unhealthy", error=redis_status.error)

        checks["renderer"] = HealthCheck(
            status="healthy" if self.ready else "unhealthy",
            error=None if self.ready else "Render backend not started",
        )
        checks["templates"] = HealthCheck(
            status="healthy",
            count=len(self.registry.template_names),
        )
        return checks
