from hippius_tus.api.middlewares.ray_id import ray_id_middleware
from hippius_tus.api.middlewares.tus_resumable import tus_resumable_middleware


__all__ = [
    "ray_id_middleware",
    "tus_resumable_middleware",
]
