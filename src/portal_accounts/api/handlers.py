"""Exception handlers — every failure leaves as {"success": false, "message": ...}.

Learn: Registered once in create_app():
- AccountsError → its own status and client-safe message
- HTTPException (404 route, 405 method, ...) → same envelope
- RequestValidationError → 400 naming the first offending field
- anything else → logged with traceback, generic 500 message
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal_accounts.errors import AccountsError

logger = structlog.get_logger()

GENERIC_MESSAGE = "Unexpected error. Try again later."


def _envelope(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


async def accounts_error_handler(request: Request, exc: AccountsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request.failed",
            path=request.url.path,
            error=type(exc).__name__,
            detail=str(exc.__cause__ or exc),
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid field '{field}': {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Missing required fields."
    return _envelope(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.unhandled_error", path=request.url.path)
    return _envelope(500, GENERIC_MESSAGE)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccountsError, accounts_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
