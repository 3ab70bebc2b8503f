from hippius_tus.api.tus.errors import register_exception_handlers
from hippius_tus.api.tus.router import router


__all__ = [
    "register_exception_handlers",
    "router",
]
