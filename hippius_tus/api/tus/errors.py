"""Map protocol errors onto tus HTTP responses."""

import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi import Response

from hippius_tus.errors import TusError
from hippius_tus.errors import VersionMismatch
from hippius_tus.protocol.capabilities import TUS_PROTOCOL_VERSION


logger = logging.getLogger(__name__)


def tus_error_response(exc: TusError) -> Response:
    """Empty-body response carrying the error's status code.

    The message travels in X-Tus-Error so the body stays empty as tus expects.
    """
    headers = {
        "Tus-Resumable": TUS_PROTOCOL_VERSION,
        "X-Tus-Error": exc.category.value,
        "Cache-Control": "no-store",
    }
    if isinstance(exc, VersionMismatch):
        headers["Tus-Version"] = TUS_PROTOCOL_VERSION
    return Response(status_code=exc.status_code, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TusError)
    async def tus_exception_handler(request: Request, exc: TusError) -> Response:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.category.value}: {exc.message}")
        return tus_error_response(exc)
