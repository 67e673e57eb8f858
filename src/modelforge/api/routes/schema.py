from typing import Any

from fastapi import APIRouter, Depends

from modelforge.api.dependencies import get_schema_document

router = APIRouter()


@router.get("/schema")
async def schema(document: dict[str, Any] = Depends(get_schema_document)) -> dict[str, Any]:
    """The generated OpenAPI document for the dispatched endpoints."""
    return document
