import dataclasses

import dotenv

from hippius_tus.utils import as_bool
from hippius_tus.utils import env


dotenv.load_dotenv()


@dataclasses.dataclass
class Config:
    """Application configuration settings."""

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=as_bool)

    # Server Configuration
    host: str = env("HOST:0.0.0.0")
    port: int = env("PORT:8000", convert=int)
    environment: str = env("ENVIRONMENT")
    debug: bool = env("DEBUG:false", convert=as_bool)
    enable_api_docs: bool = env("ENABLE_API_DOCS:false", convert=as_bool)

    # Redis for upload sessions and completion events
    redis_url: str = env("REDIS_URL:redis://127.0.0.1:6379/0")

    # tus protocol settings
    # Route prefix under which upload resources live
    tus_base_path: str = env("HIPPIUS_TUS_BASE_PATH:/files")
    # 0 disables the ceiling
    max_upload_size: int = env("HIPPIUS_TUS_MAX_UPLOAD_SIZE:0", convert=int)
    upload_dir: str = env("HIPPIUS_TUS_UPLOAD_DIR:/var/lib/hippius/tus_uploads")
    completed_queue_name: str = env("HIPPIUS_TUS_COMPLETED_QUEUE:tus_upload_completed", convert=str)

    # Janitor settings
    gc_max_age_seconds: int = env("HIPPIUS_TUS_GC_MAX_AGE_SECONDS:604800", convert=int)  # 7 days
    janitor_sleep_seconds: int = env("HIPPIUS_TUS_JANITOR_SLEEP_SECONDS:600", convert=int)


def get_config() -> Config:
    """Get application configuration."""
    cfg = Config()

    env_value = getattr(cfg, "environment", None)
    if not env_value or not env_value.strip():
        raise ValueError("ENVIRONMENT variable is required but not set or empty")

    if cfg.max_upload_size < 0:
        raise ValueError("HIPPIUS_TUS_MAX_UPLOAD_SIZE must be >= 0")

    # Normalize route prefix and queue name (strip quotes/whitespace)
    base_path = "/" + cfg.tus_base_path.strip().strip("\"'").strip("/")
    if base_path == "/":
        raise ValueError("HIPPIUS_TUS_BASE_PATH must name a path segment, e.g. /files")
    object.__setattr__(cfg, "tus_base_path", base_path)

    q = cfg.completed_queue_name.strip().strip("\"'")
    object.__setattr__(cfg, "completed_queue_name", q or "tus_upload_completed")

    return cfg
