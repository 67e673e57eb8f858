from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from modelforge.api.routes.dispatch import router as dispatch_router
from modelforge.api.routes.health import router as health_router
from modelforge.api.routes.schema import router as schema_router
from modelforge.emitters.dispatcher import Dispatcher


def create_app(
    dispatcher: Dispatcher,
    schema_document: dict[str, Any] | None = None,
    title: str = "modelforge API",
    version: str = "0.1.0",
) -> FastAPI:
    app = FastAPI(
        title=title,
        description="Dispatches requests through compiled validation pipelines.",
        version=version,
    )
    app.state.dispatcher = dispatcher
    app.state.schema_document = schema_document or {}

    app.include_router(health_router, include_in_schema=False)
    app.include_router(schema_router, include_in_schema=False)
    app.include_router(dispatch_router)

    return app
