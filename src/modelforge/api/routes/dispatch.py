from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from modelforge.api.dependencies import get_dispatcher, get_validation_context
from modelforge.api.schemas import EndpointListResponse, EndpointSummary
from modelforge.emitters.dispatcher import Dispatcher
from modelforge.models import ValidationContext

router = APIRouter(prefix="/api", tags=["dispatch"])

_ERROR_STATUS = {
    "ValidationError": status.HTTP_400_BAD_REQUEST,
    "NotFound": status.HTTP_404_NOT_FOUND,
}


@router.get("", response_model=EndpointListResponse)
async def list_endpoints(dispatcher: Dispatcher = Depends(get_dispatcher)) -> EndpointListResponse:
    summaries = []
    for name in dispatcher.endpoints:
        route = dispatcher.route(name)
        assert route is not None
        summaries.append(
            EndpointSummary(
                name=name,
                contract=route.endpoint.contract_type_name,
                access=list(route.endpoint.access_tags),
            )
        )
    return EndpointListResponse(endpoints=summaries)


@router.post("/{endpoint}")
async def dispatch(
    endpoint: str,
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    context: ValidationContext = Depends(get_validation_context),
) -> Any:
    """Decode, validate and forward one request to ``endpoint``."""
    body = await request.body()
    result = dispatcher.dispatch(endpoint, body or b"{}", context)
    if result.error is not None:
        return JSONResponse(status_code=_ERROR_STATUS[result.error.kind], content=result.error.model_dump())
    return result.payload
