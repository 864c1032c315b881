from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes.occupations import router as occupations_router
from api.routes.research import router as research_router
from exposure_kb.service.errors import (
    CacheError,
    DataNotFoundError,
    InvalidDataError,
    KnowledgeBaseError,
    ServiceNotInitializedError,
)

ERROR_STATUS = (
    (DataNotFoundError, 404),
    (ServiceNotInitializedError, 503),
    (InvalidDataError, 422),
    (CacheError, 500),
)


def status_for(error: KnowledgeBaseError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


async def knowledge_base_error_handler(request: Request, exc: KnowledgeBaseError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())


def create_app() -> FastAPI:
    app = FastAPI(title="AI Exposure Knowledge Base API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(KnowledgeBaseError, knowledge_base_error_handler)

    app.include_router(occupations_router)
    app.include_router(research_router)

    @app.get("/healthz")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
