"""
Document rendering endpoint for DocRender.

Accepts a template name plus data and returns the rendered PDF. Identical
requests in flight at the same time are rejected with 429.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from docrender.api.deps import get_render_context
from docrender.context import RenderContext
from docrender.schemas.render import ErrorResponse, RenderRequest
from docrender.services.pipeline import PipelineResult

router = APIRouter()

PDF_MEDIA_TYPE = "application/pdf"


async def read_json_body(request: Request) -> Any:
    """
    Parse the request body as JSON.

    An empty or malformed body yields None, which the pipeline rejects
    as an invalid request with a request id like any other 400.
    """
    try:
        return await request.json()
    except ValueError:
        return None


def build_response(result: PipelineResult) -> Response:
    """
    Convert a pipeline result into an HTTP response.

    Success returns the PDF as an attachment; failures return the JSON
    error body with the status chosen by the pipeline.
    """
    headers = {"X-Request-ID": result.request_id}

    if not result.ok:
        if result.retry_after is not None:
            headers["Retry-After"] = str(result.retry_after)
        return JSONResponse(
            status_code=result.status_code,
            content=result.error.model_dump(exclude_none=True),
            headers=headers,
        )

    headers["Content-Disposition"] = f'attachment; filename="{result.filename}"'
    return Response(
        content=result.document,
        status_code=result.status_code,
        media_type=PDF_MEDIA_TYPE,
        headers=headers,
    )


@router.post(
    "/generate-pdf",
    name="generate_pdf",
    summary="Render a template to PDF",
    description="Bind data into a registered template and return the rendered PDF.",
    response_class=Response,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": RenderRequest.model_json_schema(by_alias=True)}},
        }
    },
    responses={
        200: {"content": {PDF_MEDIA_TYPE: {}}},
        400: {"model": ErrorResponse, "description": "Body is not JSON, or templateName or data missing"},
        404: {"model": ErrorResponse, "description": "Template not found"},
        429: {"model": ErrorResponse, "description": "Identical request already in progress"},
        500: {"model": ErrorResponse, "description": "Enrichment, rendering or lock store failure"},
    },
)
async def generate_pdf(
    request: Request,
    context: RenderContext = Depends(get_render_context),
) -> Response:
    """
    Render a PDF document.

    Steps:
    1. Fingerprint (templateName, data) and take the deduplication lock
    2. Attach QR code / chart images to sections
    3. Bind data into the template
    4. Render with the browser, retrying transient failures
    5. Release the lock and return the document
    """
    payload = await read_json_body(request)
    result = await context.orchestrator.run(payload)
    return build_response(result)
