# Run from project root: uvicorn sourcetrace.main:app --port 3001 --reload

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sourcetrace.api.routes import router
from sourcetrace.core.config import CORS_ORIGINS
from sourcetrace.core.errors import UploadError
from sourcetrace.schemas.upload import ErrorResponse

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create the upload server: CORS for the front ends, file routes, {success, error} envelopes."""
    app = FastAPI(title="SourceTrace Upload Server")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
        logger.warning("[api] %s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=str(exc.detail)).model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("query", "body", "path"))
        message = f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
        logger.warning("[api] %s %s -> 422 %s", request.method, request.url.path, message)
        return JSONResponse(status_code=422, content=ErrorResponse(error=message).model_dump())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error")
        return JSONResponse(status_code=500, content=ErrorResponse(error="Internal server error").model_dump())

    app.include_router(router)
    return app


app = create_app()
