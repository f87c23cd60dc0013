"""
FastAPI application factory.

Maps service-layer exceptions onto HTTP responses:
- SkuNotFound -> 404
- NotFoundOrAccessDenied, NoBOMEffectiveOnDate, ValidationError,
  malformed bodies -> 400
- InsufficientInventory -> 400 with insufficientItems
- DatabaseError and anything unexpected -> 500 with a generic message
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..services.exceptions import (
    DatabaseError,
    InsufficientInventory,
    ServiceError,
    SkuNotFound,
)
from ..utils.config import get_config
from .build_router import router as build_router
from .schemas import to_camel_payload

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(content={"message": str(exc.detail)}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        ]
        return JSONResponse(
            content={"message": "Validation failed: " + "; ".join(errors)}, status_code=400
        )

    @app.exception_handler(SkuNotFound)
    async def sku_not_found_handler(request: Request, exc: SkuNotFound):
        return JSONResponse(content={"message": str(exc)}, status_code=404)

    @app.exception_handler(InsufficientInventory)
    async def insufficient_inventory_handler(request: Request, exc: InsufficientInventory):
        return JSONResponse(
            content={
                "message": str(exc),
                "insufficientItems": to_camel_payload(exc.to_payload()),
            },
            status_code=400,
        )

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError):
        logger.error(f"Storage failure on {request.url.path}: {exc.original_error}")
        return JSONResponse(content={"message": GENERIC_ERROR_MESSAGE}, status_code=500)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(content={"message": str(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.url.path}")
        return JSONResponse(content={"message": GENERIC_ERROR_MESSAGE}, status_code=500)


def create_app() -> FastAPI:
    """Build the API application."""
    config = get_config()
    app = FastAPI(title=config.app_name, version=config.app_version)
    setup_exception_handlers(app)
    app.include_router(build_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app
