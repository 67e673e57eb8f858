from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    endpoints: int = 0


class EndpointSummary(BaseModel):
    name: str
    contract: str
    access: list[str]


class EndpointListResponse(BaseModel):
    endpoints: list[EndpointSummary]
