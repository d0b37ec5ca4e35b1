"""
Pipeline Error Taxonomy

Every failure the rendering pipeline can surface is one of these exception
types. Each carries its outcome category and HTTP status so the
orchestrator can classify failures by type instead of by message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class OutcomeKind(str, Enum):
    """Outcome categories reported in error response bodies."""

    INVALID_REQUEST = "invalid_request"
    CONFLICT = "conflict"
    TEMPLATE_NOT_FOUND = "template_not_found"
    ENRICHMENT_FAILED = "enrichment_failed"
    RENDERING_FAILED = "rendering_failed"
    LOCK_STORE_UNAVAILABLE = "lock_store_unavailable"
    INTERNAL = "internal_error"


class PipelineError(Exception):
    """Base class for classified pipeline failures."""

    outcome: OutcomeKind = OutcomeKind.INTERNAL
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequest(PipelineError):
    """Required fields missing or malformed. The client must fix the request."""

    outcome = OutcomeKind.INVALID_REQUEST
    status_code = 400


class InvalidPayload(InvalidRequest):
    """The request data cannot be canonically serialized."""


class Conflict(PipelineError):
    """An identical request is already being processed."""

    outcome = OutcomeKind.CONFLICT
    status_code = 429

    def __init__(
        self,
        message: str,
        retry_after: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.retry_after = retry_after


class TemplateNotFound(PipelineError):
    """The requested template is not registered."""

    outcome = OutcomeKind.TEMPLATE_NOT_FOUND
    status_code = 404

    def __init__(self, template_name: str):
        super().__init__(
            f"Template '{template_name}' not found",
            {"template_name": template_name},
        )
        self.template_name = template_name


class EnrichmentFailed(PipelineError):
    """A QR code or chart could not be generated from a section."""

    outcome = OutcomeKind.ENRICHMENT_FAILED


class CompositionFailed(PipelineError):
    """The template raised while binding data."""

    outcome = OutcomeKind.INTERNAL


class RenderingFailed(PipelineError):
    """The rendering backend failed on every attempt of the retry budget."""

    outcome = OutcomeKind.RENDERING_FAILED

    def __init__(self, message: str, attempts: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.attempts = attempts


class LockStoreUnavailable(PipelineError):
    """The lock store could not be reached, so uniqueness cannot be verified."""

    outcome = OutcomeKind.LOCK_STORE_UNAVAILABLE


class InternalError(PipelineError):
    """Unclassified failure."""

    outcome = OutcomeKind.INTERNAL


class TemplateRegistryError(Exception):
    """Raised at startup when templates or fragments cannot be registered."""

    pass
