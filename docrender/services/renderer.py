"""
PDF rendering through a headless browser, with bounded retry.

Each attempt runs in a fresh, isolated browser:
1. launch a browser and open a page
2. load the markup and wait for network idle
3. export a PDF (fixed page size, backgrounds printed)
4. close the browser, even when a step failed

Attempts that raise are retried with a fixed backoff until the budget is
spent, after which RenderingFailed is raised.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Protocol

from tenacity import AsyncRetrying, RetryError, before_sleep_log, stop_after_attempt, wait_fixed

from docrender.core.errors import RenderingFailed

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class RenderBackendError(Exception):
    """Raised by a render backend when an attempt produced no usable document."""

    pass


class RenderSession(Protocol):
    async def load(self, markup: str) -> None: ...

    async def export(self) -> bytes: ...

    async def close(self) -> None: ...


class RenderBackend(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def launch(self) -> RenderSession: ...


class PlaywrightSession:
    """One browser plus one page, used for a single attempt."""

    def __init__(self, browser, page, page_format: str, timeout_ms: int):
        self.browser = browser
        self.page = page
        self.page_format = page_format
        self.timeout_ms = timeout_ms

    async def load(self, markup: str) -> None:
        await self.page.set_content(markup, wait_until="networkidle", timeout=self.timeout_ms)

    async def export(self) -> bytes:
        return await self.page.pdf(format=self.page_format, print_background=True)

    async def close(self) -> None:
        await self.browser.close()


class PlaywrightRenderBackend:
    """
    Chromium via Playwright.

    The Playwright driver is started once per worker; every launch()
    starts a new browser process so nothing is shared between attempts.
    """

    def __init__(self, headless: bool = True, page_format: str = "A4", timeout_ms: int = 30000):
        self.headless = headless
        self.page_format = page_format
        self.timeout_ms = timeout_ms
        self._playwright = None

    @property
    def is_started(self) -> bool:
        return self._playwright is not None

    async def start(self) -> None:
        from playwright.async_api import async_playwright

        if self._playwright is None:
            self._playwright = await async_playwright().start()
            logger.info("Playwright driver started")

    async def stop(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Playwright driver stopped")

    async def launch(self) -> PlaywrightSession:
        if self._playwright is None:
            raise RenderBackendError("Playwright driver is not started")

        browser = await self._playwright.chromium.launch(headless=self.headless, args=CHROMIUM_ARGS)
        try:
            page = await browser.new_page()
        except Exception:
            await browser.close()
            raise
        return PlaywrightSession(browser, page, self.page_format, self.timeout_ms)


class RenderRetrier:
    """
    Renders markup to PDF bytes, retrying failed attempts.

    Args:
        backend: Render backend providing isolated sessions
        max_attempts: Total attempts before giving up
        min_backoff_seconds: Fixed wait between attempts
    """

    def __init__(self, backend: RenderBackend, max_attempts: int = 3, min_backoff_seconds: float = 1.0):
        self.backend = backend
        self.max_attempts = max_attempts
        self.min_backoff_seconds = min_backoff_seconds

    async def render(self, markup: str) -> bytes:
        """
        Render markup, retrying up to the attempt budget.

        Raises:
            RenderingFailed: If every attempt failed
        """
        errors: List[str] = []
        document: Optional[bytes] = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.min_backoff_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    try:
                        document = await self._attempt(markup)
                    except Exception as e:
                        errors.append(f"{type(e).__name__}: {e}")
                        logger.warning(f"Render attempt {number}/{self.max_attempts} failed: {e}")
                        raise
        except RetryError as e:
            last = e.last_attempt.exception()
            raise RenderingFailed(
                f"PDF rendering failed after {self.max_attempts} attempts",
                attempts=self.max_attempts,
                details={"attempts": self.max_attempts, "errors": errors},
            ) from last

        return document

    async def _attempt(self, markup: str) -> bytes:
        async with self._session() as session:
            await session.load(markup)
            document = await session.export()

        if not document:
            raise RenderBackendError("Renderer returned an empty document")
        return document

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[RenderSession]:
        session = await self.backend.launch()
        try:
            yield session
        finally:
            try:
                await session.close()
            except Exception as e:
                logger.warning(f"Render session teardown failed: {e}")
