"""
SuburbMates admin API application.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api import duplicates, quality_scoring
from config.logging import get_logger
from directory.exceptions import DirectoryError

logger = get_logger("api")


def create_app() -> FastAPI:
    app = FastAPI(
        title="SuburbMates Admin API",
        description="Duplicate detection and listing quality scoring",
        version="0.1.0",
    )

    @app.exception_handler(DirectoryError)
    async def directory_error_handler(request: Request, exc: DirectoryError):
        logger.error(
            f"Directory error - error_code: {exc.error_code}, details: {exc.details}, "
            f"path: {request.url.path}"
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request - path: {request.url.path}")
        return JSONResponse(
            status_code=400,
            content={
                "error": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unexpected error - path: {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"},
        )

    app.include_router(quality_scoring.router)
    app.include_router(duplicates.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
