import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.middleware.request_id import REQUEST_ID_HEADER, resolve_request_id

logger = logging.getLogger(__name__)


def _envelope(request: Request, status_code: int, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None) or resolve_request_id(
        request.headers.get(REQUEST_ID_HEADER)
    )
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers={REQUEST_ID_HEADER: request_id},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _envelope(request, exc.status_code, message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    """Malformed request bodies and parameters are client errors: 400, not 422."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid {field}" if field else "Invalid request"
    return _envelope(request, status.HTTP_400_BAD_REQUEST, message)


async def error_envelope_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    try:
        return await call_next(request)
    except StarletteHTTPException as exc:
        return await http_exception_handler(request, exc)
    except Exception:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _envelope(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
        )
