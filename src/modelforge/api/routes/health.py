from fastapi import APIRouter, Depends

from modelforge.api.dependencies import get_dispatcher
from modelforge.api.schemas import HealthResponse
from modelforge.emitters.dispatcher import Dispatcher

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(dispatcher: Dispatcher = Depends(get_dispatcher)) -> HealthResponse:
    return HealthResponse(endpoints=len(dispatcher.endpoints))
