from __future__ import annotations

import contextlib
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _envelope(status_code: int, error: str) -> JSONResponse:
    return JSONResponse({"error": error, "data": None}, status_code=status_code)


def create_app(database=None, settings=None) -> FastAPI:
    load_dotenv("local.env")

    from endpoints.database_endpoints import router as database_router
    from persistence import (
        CorruptDocumentError,
        DocumentDatabase,
        InvalidDocumentError,
        InvalidNameError,
        InvalidTestValueError,
    )
    from persistence.factory import persister_from_settings
    from settings import get_settings

    if settings is None:
        settings = get_settings()
    if database is None:
        database = DocumentDatabase(persister_from_settings(settings))

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        # Start the one-time persister setup eagerly; requests await the same setup.
        await database.ready()
        yield

    app = FastAPI(lifespan=lifespan)
    app.state.database = database
    app.state.settings = settings

    if settings.debug_log_requests:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            response = await call_next(request)
            logger.info("REQUEST: %s %s -> %s", request.method, request.url.path, response.status_code)
            return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _envelope(404, "The requested route was not found")
        return _envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return _envelope(400, "Invalid parameters in request")

    @app.exception_handler(InvalidNameError)
    async def invalid_name(request: Request, exc: InvalidNameError):
        return _envelope(400, str(exc))

    @app.exception_handler(InvalidTestValueError)
    async def invalid_test_value(request: Request, exc: InvalidTestValueError):
        return _envelope(400, str(exc))

    @app.exception_handler(InvalidDocumentError)
    async def invalid_document(request: Request, exc: InvalidDocumentError):
        return _envelope(400, str(exc))

    @app.exception_handler(CorruptDocumentError)
    async def corrupt_document(request: Request, exc: CorruptDocumentError):
        logger.error("CORRUPT DOCUMENT: %s %s: %s", request.method, request.url.path, exc)
        return _envelope(500, "Internal server error")

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.exception("UNHANDLED: %s %s", request.method, request.url.path)
        return _envelope(500, "Internal server error")

    app.include_router(database_router)

    return app


app = create_app()
