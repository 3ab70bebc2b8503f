"""Log setup shared by the API and the janitor.

Every record carries the request's ray ID and the upload key it concerns, so a
single upload can be followed across POST, PATCH and the completion event.
"""

import logging
import os
import sys
from typing import Protocol

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from hippius_tus.services.ray_id_service import ray_id_context
from hippius_tus.services.ray_id_service import upload_key_context


LOG_FORMAT = "%(asctime)s - [%(ray_id)s] [%(upload_key)s] - %(name)s - %(levelname)s - %(message)s"


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str


class UploadContextFilter(logging.Filter):
    """Fills ray_id and upload_key from the request context unless set via ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "ray_id"):
            record.ray_id = ray_id_context.get()
        if not hasattr(record, "upload_key"):
            record.upload_key = upload_key_context.get()
        return True


def _loki_handler(config: LoggingConfig, service_name: str) -> LokiLoggerHandler:
    return LokiLoggerHandler(
        url=config.loki_url,
        labels={
            "service": f"tus-{service_name}",
            "protocol": "tus",
            "environment": config.environment,
            "host": os.getenv("HOSTNAME", "unknown"),
        },
        timeout=10,
        compressed=True,
    )


def setup_loki_logging(config: LoggingConfig, service_name: str) -> logging.Logger:
    """Send logs to stdout and, when enabled, to Loki.

    Args:
        config: Application configuration
        service_name: Component name, e.g. "api" or "janitor"

    Returns:
        Logger named after the component
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.loki_enabled and config.loki_url:
        handlers.append(_loki_handler(config, service_name))

    context_filter = UploadContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )

    return logging.getLogger(service_name)
