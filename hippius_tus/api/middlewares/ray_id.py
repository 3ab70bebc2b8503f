from typing import Awaitable
from typing import Callable

from fastapi import Request
from fastapi import Response

from hippius_tus.services.ray_id_service import generate_ray_id
from hippius_tus.services.ray_id_service import get_logger_with_ray_id
from hippius_tus.services.ray_id_service import ray_id_context


RAY_ID_HEADER = "X-Hippius-Ray-ID"


async def ray_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag each request with a ray ID for logging and echo it to the client.

    An upstream proxy may supply the ID in X-Hippius-Ray-ID; otherwise a new
    one is generated. Register this middleware last so it runs first.
    """
    ray_id = request.headers.get(RAY_ID_HEADER) or generate_ray_id()
    ray_id_context.set(ray_id)
    request.state.ray_id = ray_id
    request.state.logger = get_logger_with_ray_id("hippius_tus.api.request", ray_id)

    response = await call_next(request)

    response.headers[RAY_ID_HEADER] = ray_id

    return response
