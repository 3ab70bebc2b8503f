import os
from pathlib import Path
from typing import Generator

import dotenv
import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from hippius_tus.protocol.engine import UploadProtocolEngine
from hippius_tus.repositories import RedisSessionStore
from hippius_tus.services.notifications import RedisEventPublisher
from hippius_tus.storage import FileSystemUploadSink


COMPLETED_QUEUE = "tus_upload_completed"


@pytest.fixture(scope="session", autouse=True)
def _load_test_env() -> Generator[None, None, None]:
    """Load test environment variables from base + local env files."""
    project_root = Path(__file__).parents[2]
    dotenv.load_dotenv(project_root / ".env.defaults", override=True)
    dotenv.load_dotenv(project_root / ".env.test-local", override=True)
    os.environ["ENVIRONMENT"] = "test"
    yield


@pytest.fixture
def redis() -> FakeRedis:
    return FakeRedis(server=FakeServer())


@pytest.fixture
def sink(tmp_path: Path) -> FileSystemUploadSink:
    return FileSystemUploadSink(str(tmp_path / "uploads"))


@pytest.fixture
def store(redis: FakeRedis, sink: FileSystemUploadSink) -> RedisSessionStore:
    return RedisSessionStore(redis, sink)


@pytest.fixture
def publisher(redis: FakeRedis) -> RedisEventPublisher:
    return RedisEventPublisher(redis, COMPLETED_QUEUE)


@pytest.fixture
def engine(store: RedisSessionStore, sink: FileSystemUploadSink, publisher: RedisEventPublisher) -> UploadProtocolEngine:
    return UploadProtocolEngine(store=store, sink=sink, publisher=publisher, max_size=0)
