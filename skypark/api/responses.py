# skypark/api/responses.py
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from skypark.core.errors import AppError, InvalidRequest

logger = logging.getLogger(__name__)


def ok(data=None, message: str | None = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def error_response(err: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=err.status_code,
        content=jsonable_encoder({"success": False, "error": err.to_dict()}),
    )


async def _app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message,
                     exc_info=exc.__cause__)
    else:
        logger.info("%s %s -> %s", request.method, request.url.path, exc.code)
    return error_response(exc)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return error_response(InvalidRequest(details=details))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
