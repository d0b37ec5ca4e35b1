"""
Shared test fixtures for DocRender tests.

Provides:
- Fake async Redis (lock store) with failure injection
- Deterministic QR/chart generators
- Fake render backend with scripted failures
- Render context wired from the fakes
- Async HTTP client against the FastAPI app
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

# Set test environment variables before importing app modules
_test_log_dir = tempfile.mkdtemp(prefix="docrender_test_logs_")
os.environ["LOG_DIR"] = _test_log_dir
os.environ["ENVIRONMENT"] = "development"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"

from docrender.context import RenderContext
from docrender.core.config import Settings
from docrender.main import app
from docrender.services.compositor import TemplateRegistry

REPO_ROOT = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = REPO_ROOT / "templates"
PARTIALS_DIR = REPO_ROOT / "partials"

FAKE_PDF = b"%PDF-1.4\n% fake document\n%%EOF"


# =============================================================================
# Fake Redis
# =============================================================================


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis covering the lock commands."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.unavailable = False
        self.fail_release = False
        self.eval_calls: List[tuple] = []

    def _check(self) -> None:
        if self.unavailable:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, nx: bool = False, ex: Optional[int] = None):
        self._check()
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def eval(self, script: str, numkeys: int, *keys_and_args: Any) -> int:
        """
        Compare-and-delete, the only script the lock coordinator runs.

        The Lua text itself is not executed here; calls are recorded so
        tests can check the script and its KEYS/ARGV layout.
        """
        self._check()
        self.eval_calls.append((script, numkeys, keys_and_args))
        if self.fail_release:
            raise RedisConnectionError("Connection reset by peer")
        key, owner = keys_and_args[0], keys_and_args[1]
        if self.data.get(key) == owner:
            del self.data[key]
            self.ttls.pop(key, None)
            return 1
        return 0

    def expire_now(self, key: str) -> None:
        """Simulate TTL expiry of a key."""
        self.data.pop(key, None)
        self.ttls.pop(key, None)

    def lock_keys(self) -> List[str]:
        return [key for key in self.data if key.startswith("lock:")]

    async def aclose(self) -> None:
        pass


# =============================================================================
# Fake generators and render backend
# =============================================================================


class FakeQrGenerator:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    async def generate(self, content: str) -> str:
        self.calls.append(content)
        if self.fail:
            raise ValueError("Data too long for QR version 40")
        return f"data:image/png;base64,QR-{content}"


class FakeChartRenderer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    async def render(self, config: Dict[str, Any]) -> str:
        self.calls.append(config)
        if self.fail:
            raise ValueError("Unsupported chart type: radar")
        return "data:image/png;base64,CHART"


class FakeSession:
    def __init__(self, backend: "FakeRenderBackend"):
        self.backend = backend

    async def load(self, markup: str) -> None:
        self.backend.loaded.append(markup)

    async def export(self) -> bytes:
        self.backend.exports += 1
        if self.backend.delay:
            await asyncio.sleep(self.backend.delay)
        if self.backend.fail_always or self.backend.failures_remaining > 0:
            self.backend.failures_remaining -= 1
            raise RuntimeError("Target page, context or browser has been closed")
        return self.backend.document

    async def close(self) -> None:
        self.backend.closes += 1
        if self.backend.close_error:
            raise RuntimeError("Browser already closed")


class FakeRenderBackend:
    """Render backend with scripted transient failures."""

    def __init__(
        self,
        failures: int = 0,
        fail_always: bool = False,
        fail_launch: bool = False,
        close_error: bool = False,
        document: bytes = FAKE_PDF,
        delay: float = 0.0,
    ):
        self.failures_remaining = failures
        self.fail_always = fail_always
        self.fail_launch = fail_launch
        self.close_error = close_error
        self.document = document
        self.delay = delay
        self.started = False
        self.launches = 0
        self.exports = 0
        self.closes = 0
        self.loaded: List[str] = []

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def launch(self) -> FakeSession:
        self.launches += 1
        if self.fail_launch:
            raise RuntimeError("Executable doesn't exist at /ms-playwright/chromium")
        return FakeSession(self)


# =============================================================================
# Context fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with no retry backoff so tests run fast."""
    return Settings(
        retry_min_backoff_seconds=0.0,
        max_retries=3,
        templates_dir=str(TEMPLATES_DIR),
        partials_dir=str(PARTIALS_DIR),
        log_dir=_test_log_dir,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def qr_generator() -> FakeQrGenerator:
    return FakeQrGenerator()


@pytest.fixture
def chart_renderer() -> FakeChartRenderer:
    return FakeChartRenderer()


@pytest.fixture
def render_backend() -> FakeRenderBackend:
    return FakeRenderBackend()


@pytest.fixture
def registry() -> TemplateRegistry:
    """Registry built from the templates shipped with the service."""
    return TemplateRegistry.load(TEMPLATES_DIR, PARTIALS_DIR)


@pytest_asyncio.fixture
async def render_context(
    settings: Settings,
    fake_redis: FakeRedis,
    registry: TemplateRegistry,
    render_backend: FakeRenderBackend,
    qr_generator: FakeQrGenerator,
    chart_renderer: FakeChartRenderer,
) -> AsyncGenerator[RenderContext, None]:
    context = RenderContext(
        settings=settings,
        redis=fake_redis,
        registry=registry,
        backend=render_backend,
        qr_generator=qr_generator,
        chart_renderer=chart_renderer,
    )
    await context.startup()
    yield context
    await context.shutdown()


# =============================================================================
# Test Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def async_client(render_context: RenderContext) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide an async HTTP client for testing the FastAPI application.

    The lifespan does not run under ASGITransport, so the fake-backed
    render context is installed on the app state directly.
    """
    app.state.render_context = render_context

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.state.render_context = None


@pytest.fixture
def invoice_payload() -> Dict[str, Any]:
    return {
        "templateName": "invoice",
        "data": {
            "empresa": "ACME Ltda",
            "secoes": [{"componente": "qrcode", "conteudo": "INV-42"}],
        },
    }
