"""
Idempotent rendering pipeline.

Sequences one render request through:

    RECEIVED -> FINGERPRINT_COMPUTED -> LOCK_ACQUIRED -> ENRICHED
             -> COMPOSED -> RENDERED -> RESPONDED

Any step may move the run to FAILED. Once the lock has been acquired,
LOCK_RELEASED is always recorded before the run returns, whatever the
outcome. Failures are classified by exception type into the outcome
categories of docrender.core.errors.

Usage:
    orchestrator = PipelineOrchestrator(locks, enricher, compositor, renderer)
    result = await orchestrator.run(payload)

    if result.ok:
        send(result.document, result.filename)
    else:
        send_json(result.status_code, result.error.model_dump(exclude_none=True))
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from pydantic import ValidationError

from docrender.core.errors import (
    Conflict,
    InternalError,
    InvalidRequest,
    LockStoreUnavailable,
    PipelineError,
)
from docrender.core.filenames import build_download_name
from docrender.core.logging import RequestLogAdapter
from docrender.schemas.render import ErrorResponse, RenderRequest
from docrender.services.compositor import TemplateCompositor
from docrender.services.enricher import DataEnricher, EnrichmentWarning
from docrender.services.fingerprint import fingerprint
from docrender.services.lock import LockCoordinator
from docrender.services.renderer import RenderRetrier

logger = logging.getLogger(__name__)

DEFAULT_CONFLICT_RETRY_AFTER_SECONDS = 5


class PipelineState(str, Enum):
    RECEIVED = "received"
    FINGERPRINT_COMPUTED = "fingerprint_computed"
    LOCK_ACQUIRED = "lock_acquired"
    ENRICHED = "enriched"
    COMPOSED = "composed"
    RENDERED = "rendered"
    RESPONDED = "responded"
    FAILED = "failed"
    LOCK_RELEASED = "lock_released"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run, ready to be turned into a response."""

    request_id: str
    status_code: int
    document: Optional[bytes] = None
    filename: Optional[str] = None
    error: Optional[ErrorResponse] = None
    fingerprint: Optional[str] = None
    warnings: List[EnrichmentWarning] = field(default_factory=list)
    states: List[PipelineState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def retry_after(self) -> Optional[int]:
        return self.error.retry_after if self.error else None


class _Run:
    """Mutable bookkeeping for a single invocation."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.states: List[PipelineState] = []
        self.log = RequestLogAdapter(logger, {"request_id": request_id})

    def enter(self, state: PipelineState) -> None:
        self.states.append(state)


class PipelineOrchestrator:
    """
    Runs render requests with fingerprint deduplication.

    A second request with the same fingerprint arriving while the first
    still holds the lock fails fast with a conflict instead of waiting.
    """

    def __init__(
        self,
        locks: LockCoordinator,
        enricher: DataEnricher,
        compositor: TemplateCompositor,
        renderer: RenderRetrier,
        conflict_retry_after: int = DEFAULT_CONFLICT_RETRY_AFTER_SECONDS,
    ):
        self.locks = locks
        self.enricher = enricher
        self.compositor = compositor
        self.renderer = renderer
        self.conflict_retry_after = conflict_retry_after

    async def run(self, payload: Any, request_id: Optional[str] = None) -> PipelineResult:
        """
        Execute the pipeline for a raw request body.

        Never raises for pipeline failures; they are returned as results
        carrying the outcome category, status code and request id.
        """
        run = _Run(request_id or str(uuid.uuid4()))
        run.enter(PipelineState.RECEIVED)

        try:
            request = self._parse(payload)
        except PipelineError as e:
            run.log.warning(f"Rejected request: {e.message}")
            return self._failure(run, e)

        run.log = RequestLogAdapter(
            logger, {"request_id": run.request_id, "template_name": request.template_name}
        )

        try:
            digest = fingerprint(request.template_name, request.data)
        except PipelineError as e:
            run.log.warning(f"Rejected request: {e.message}")
            return self._failure(run, e)
        run.enter(PipelineState.FINGERPRINT_COMPUTED)

        lock_key = self.locks.lock_key(digest)
        run.log.info(f"Processing request (hash: {digest[:8]}...)")

        try:
            acquired = await self.locks.acquire(lock_key, run.request_id)
        except LockStoreUnavailable as e:
            run.log.critical(f"Lock store unavailable: {e.details}")
            return self._failure(run, e, digest)

        if not acquired:
            run.log.warning(f"Duplicate request blocked (hash: {digest[:8]}...)")
            conflict = Conflict(
                "This request is already being processed. Please wait.",
                retry_after=self.conflict_retry_after,
                details={"fingerprint": digest},
            )
            return self._failure(run, conflict, digest)

        run.enter(PipelineState.LOCK_ACQUIRED)
        try:
            return await self._process(run, request, digest)
        finally:
            await self._release(run, lock_key)

    def _parse(self, payload: Any) -> RenderRequest:
        if not isinstance(payload, dict) or not payload.get("templateName") or payload.get("data") is None:
            raise InvalidRequest('Both "templateName" and "data" are required.')
        try:
            return RenderRequest.model_validate(payload)
        except ValidationError as e:
            raise InvalidRequest(
                "Invalid render request",
                {"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    async def _process(self, run: _Run, request: RenderRequest, digest: str) -> PipelineResult:
        try:
            run.log.debug("Enriching sections (QR codes/charts)")
            enrichment = await self.enricher.enrich(request.data)
            run.enter(PipelineState.ENRICHED)
            for warning in enrichment.warnings:
                run.log.warning(f"Section skipped: {warning.message}")

            markup = self.compositor.compose(request.template_name, enrichment.data)
            run.enter(PipelineState.COMPOSED)

            run.log.info(f"Rendering PDF (hash: {digest[:8]}...)")
            started = time.perf_counter()
            document = await self.renderer.render(markup)
            run.enter(PipelineState.RENDERED)
        except PipelineError as e:
            run.log.error(f"Pipeline failed: {e.message}", extra={"details": e.details})
            return self._failure(run, e, digest)
        except Exception as e:
            run.log.exception(f"Unexpected pipeline error: {e}")
            return self._failure(run, InternalError(str(e) or type(e).__name__), digest)

        duration_ms = round((time.perf_counter() - started) * 1000)
        filename = build_download_name(request.output_name, request.template_name)
        run.log.info(
            "PDF generated",
            extra={"duration_ms": duration_ms, "size_bytes": len(document)},
        )

        run.enter(PipelineState.RESPONDED)
        return PipelineResult(
            request_id=run.request_id,
            status_code=200,
            document=document,
            filename=filename,
            fingerprint=digest,
            warnings=enrichment.warnings,
            states=run.states,
        )

    async def _release(self, run: _Run, lock_key: str) -> None:
        try:
            await self.locks.release(lock_key, run.request_id)
        except PipelineError as e:
            run.log.error(f"Lock release failed: {e.message}", extra={"details": e.details})
        except Exception as e:
            run.log.error(f"Lock release failed: {e}")
        run.enter(PipelineState.LOCK_RELEASED)

    def _failure(self, run: _Run, error: PipelineError, digest: Optional[str] = None) -> PipelineResult:
        run.enter(PipelineState.FAILED)
        body = ErrorResponse(
            error=error.outcome.value,
            message=error.message,
            request_id=run.request_id,
            retry_after=getattr(error, "retry_after", None),
            details=error.details,
        )
        return PipelineResult(
            request_id=run.request_id,
            status_code=error.status_code,
            error=body,
            fingerprint=digest,
            states=run.states,
        )
