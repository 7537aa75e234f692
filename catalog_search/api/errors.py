"""
Error Handlers
Maps the catalog search exception taxonomy onto HTTP responses.
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ..errors import (
    CatalogSearchError,
    ConversionWithoutClickError,
    QueryValidationError,
    SearchTimeoutError,
    TransientInfraError,
)

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, error_type: str, details=None) -> JSONResponse:
    content = {"error": {"message": message, "type": error_type}}
    if details is not None:
        content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def setup_error_handlers(app: FastAPI) -> None:
    """
    Set up custom error handlers for the FastAPI app.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(QueryValidationError)
    async def query_validation_handler(request: Request, exc: QueryValidationError):
        logger.warning(f"Invalid search parameters: {exc.errors}", extra={"path": request.url.path})
        return _error_response(
            status.HTTP_400_BAD_REQUEST, "Invalid request parameters", "QueryValidationError", exc.errors
        )

    @app.exception_handler(ConversionWithoutClickError)
    async def conversion_without_click_handler(request: Request, exc: ConversionWithoutClickError):
        logger.warning(f"Conversion without click: {exc}", extra={"path": request.url.path})
        return _error_response(
            status.HTTP_404_NOT_FOUND,
            "Click record not found",
            "ConversionWithoutClickError",
            {"query": exc.query, "product_id": exc.product_id},
        )

    @app.exception_handler(SearchTimeoutError)
    async def search_timeout_handler(request: Request, exc: SearchTimeoutError):
        logger.error(f"Search timed out: {exc}", extra={"path": request.url.path})
        return _error_response(
            status.HTTP_504_GATEWAY_TIMEOUT,
            "Search request timed out",
            "SearchTimeoutError",
            {"timeout_seconds": exc.timeout_seconds},
        )

    @app.exception_handler(TransientInfraError)
    async def transient_infra_handler(request: Request, exc: TransientInfraError):
        logger.error(f"Backend unavailable: {exc}", extra={"path": request.url.path})
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Search service temporarily unavailable",
            "TransientInfraError",
            {"component": exc.component},
        )

    @app.exception_handler(CatalogSearchError)
    async def catalog_search_error_handler(request: Request, exc: CatalogSearchError):
        logger.error(f"Catalog search error: {exc}", extra={"path": request.url.path})
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), exc.__class__.__name__)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        logger.warning(f"Validation error: {exc}", extra={"path": request.url.path})

        # Convert error details to JSON-serializable format
        errors = []
        for error in exc.errors():
            errors.append(
                {
                    "loc": list(error.get("loc", [])),
                    "msg": str(error.get("msg", "")),
                    "type": error.get("type", ""),
                }
            )

        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "Request validation failed", "ValidationError", errors
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unexpected error: {exc}", exc_info=True, extra={"path": request.url.path})
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", "InternalServerError"
        )
