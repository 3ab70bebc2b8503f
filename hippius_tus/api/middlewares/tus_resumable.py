"""Tus-Resumable version negotiation.

Requests that carry a non-empty Tus-Resumable header other than the server's
version are refused with 412 before reaching a handler. OPTIONS is exempt so
clients can always discover the supported versions.
"""

import logging
from typing import Awaitable
from typing import Callable

from fastapi import Request
from fastapi import Response

from hippius_tus.api.tus.errors import tus_error_response
from hippius_tus.errors import VersionMismatch
from hippius_tus.protocol.capabilities import TUS_PROTOCOL_VERSION


logger = logging.getLogger(__name__)


async def tus_resumable_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    client_version = request.headers.get("Tus-Resumable")

    if request.method != "OPTIONS" and client_version and client_version != TUS_PROTOCOL_VERSION:
        logger.info(f"Rejecting {request.method} {request.url.path}: Tus-Resumable={client_version!r}")
        return tus_error_response(VersionMismatch(f"Unsupported Tus-Resumable {client_version!r}"))

    response = await call_next(request)
    response.headers["Tus-Resumable"] = TUS_PROTOCOL_VERSION
    return response
