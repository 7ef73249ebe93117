from fastapi import APIRouter, Depends, Request

from grammar_gateway.adapters.llm.factory import create_llm_client
from grammar_gateway.core.cancellation import run_until_disconnected
from grammar_gateway.core.config import settings
from grammar_gateway.core.exception_handlers import UTF8JSONResponse
from grammar_gateway.core.rate_limit import ANALYZE_ROUTE, enforce_rate_limit
from grammar_gateway.core.request_validation import read_json_body, validate_analysis_request
from grammar_gateway.schemas.analysis import AnalysisResult, AnalyzeBody, ErrorResponse
from grammar_gateway.services.analysis_service import AnalysisService

router = APIRouter(tags=["Grammar"])


def get_analysis_service(request: Request) -> AnalysisService:
    """Return the app's analysis service, creating the upstream client on first use.

    Built lazily so the gateway starts (and the greeting route works) without
    an upstream credential.
    """
    service = getattr(request.app.state, "analysis_service", None)
    if service is None:
        service = AnalysisService(
            llm=create_llm_client(),
            timeout_seconds=settings.app.upstream_deadline_seconds,
        )
        request.app.state.analysis_service = service
    return service


@router.post(
    settings.app.grammar_path,
    response_model=AnalysisResult,
    response_class=UTF8JSONResponse,
    dependencies=[Depends(enforce_rate_limit(ANALYZE_ROUTE))],
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": AnalyzeBody.model_json_schema()}},
        }
    },
    responses={
        400: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def analyze_grammar(request: Request) -> AnalysisResult:
    """Count grammatical, spelling and punctuation errors in a text.

    The method check happens in routing (405 + ``Allow: POST``) and the rate
    limit in the dependency, both before the body is read. A throttled or
    invalid request never reaches the upstream.

    Returns:
        AnalysisResult: ``{"errorCount": n}`` with n >= 0.

    Raises:
        ValidationAppError: 400 for a missing, non-string or too long text.
        UpstreamAppError: Upstream status relayed, else 500.
    """
    raw_body = await read_json_body(request)
    analysis_request = validate_analysis_request(raw_body)

    service = get_analysis_service(request)
    return await run_until_disconnected(
        request,
        service.analyze(analysis_request),
        poll_interval=settings.app.disconnect_poll_seconds,
    )
