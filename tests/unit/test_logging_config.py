import logging
from unittest.mock import Mock
from unittest.mock import patch

import pytest

from hippius_tus.logging_config import UploadContextFilter
from hippius_tus.logging_config import setup_loki_logging
from hippius_tus.services.ray_id_service import ray_id_context
from hippius_tus.services.ray_id_service import upload_key_context


@pytest.fixture
def mock_config():
    config = Mock()
    config.log_level = "INFO"
    config.loki_enabled = False
    config.loki_url = ""
    config.environment = "test"
    return config


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg="PATCH applied",
        args=(),
        exc_info=None,
    )


def test_context_filter_defaults_when_no_request():
    record = _record()

    assert UploadContextFilter().filter(record) is True
    assert record.ray_id == "no-ray-id"
    assert record.upload_key == "-"


def test_context_filter_reads_request_context():
    ray_token = ray_id_context.set("0123456789abcdef")
    key_token = upload_key_context.set("upload-1")
    try:
        record = _record()
        UploadContextFilter().filter(record)
    finally:
        upload_key_context.reset(key_token)
        ray_id_context.reset(ray_token)

    assert record.ray_id == "0123456789abcdef"
    assert record.upload_key == "upload-1"


def test_context_filter_preserves_explicit_ray_id():
    record = _record()
    record.ray_id = "a1b2c3d4e5f67890"

    UploadContextFilter().filter(record)

    assert record.ray_id == "a1b2c3d4e5f67890"


def test_context_filter_works_with_logger_extra():
    logger = logging.getLogger("test_tus_filter_extra")
    logger.setLevel(logging.INFO)
    log_records = []

    class RecordCapture(logging.Handler):
        def emit(self, record):
            log_records.append(record)

    capture_handler = RecordCapture()
    capture_handler.addFilter(UploadContextFilter())
    logger.addHandler(capture_handler)

    logger.info("chunk", extra={"ray_id": "a1b2c3d4e5f67890"})
    logger.info("chunk")

    assert [r.ray_id for r in log_records] == ["a1b2c3d4e5f67890", "no-ray-id"]
    logger.handlers.clear()


def test_setup_loki_logging_returns_named_logger(mock_config):
    logger = setup_loki_logging(mock_config, "api")

    assert isinstance(logger, logging.Logger)
    assert logger.name == "api"


def test_setup_loki_logging_skips_loki_when_disabled(mock_config):
    with patch("hippius_tus.logging_config.LokiLoggerHandler") as loki_handler:
        setup_loki_logging(mock_config, "api")

    loki_handler.assert_not_called()


def test_setup_loki_logging_adds_loki_handler(mock_config):
    mock_config.loki_enabled = True
    mock_config.loki_url = "http://loki:3100/loki/api/v1/push"

    with patch("hippius_tus.logging_config.LokiLoggerHandler") as loki_handler:
        setup_loki_logging(mock_config, "janitor")

    loki_handler.assert_called_once()
    labels = loki_handler.call_args.kwargs["labels"]
    assert labels["service"] == "tus-janitor"
    assert labels["environment"] == "test"
