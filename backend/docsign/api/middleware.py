from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from docsign.schemas.error import ErrorResponse
from docsign.utils.exceptions import DocSignApiError
import logging

logger = logging.getLogger(__name__)


def _error_json(status_code: int, code: str, message: str, field: str = None, details: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.build(code, message, field=field, details=details).model_dump()
    )


async def error_handler_middleware(request: Request, call_next):
    """Global error handler middleware that converts exceptions to structured error responses."""
    try:
        return await call_next(request)
    except DocSignApiError as e:
        logger.warning(f"DocSign API Error: {e.code} - {e.message}")
        return _error_json(e.status_code, e.code, e.message, e.field, e.details)
    except Exception as e:
        # Catch-all for unexpected errors
        logger.error(f"Unexpected error on {request.method} {request.url.path}: {str(e)}", exc_info=True)
        return _error_json(
            500,
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            details={"error_type": type(e).__name__}
        )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return _error_json(
        exc.status_code,
        "HTTP_EXCEPTION",
        str(exc.detail),
        details={"status_code": exc.status_code}
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    first = errors[0] if errors else {"loc": [], "msg": "Invalid request"}
    # Drop the "body"/"query" prefix so field names match the payload keys
    field = ".".join(first["loc"][1:]) or None
    logger.warning(f"Request validation failed on {request.url.path}: {errors}")
    return _error_json(400, "VALIDATION_ERROR", first["msg"], field=field, details={"errors": errors})


def register_error_handlers(app: FastAPI) -> None:
    app.middleware("http")(error_handler_middleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
