import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from hippius_tus.errors import StorageAllocationFailed
from hippius_tus.errors import WriteFailed
from hippius_tus.storage import FileSystemUploadSink


@pytest.mark.asyncio
async def test_allocate_creates_fresh_empty_file(sink: FileSystemUploadSink):
    first = await sink.allocate("same-key")
    second = await sink.allocate("same-key")

    assert first != second
    assert Path(first).exists() and Path(first).stat().st_size == 0
    assert Path(first).parent == sink.root


@pytest.mark.asyncio
async def test_allocate_sanitizes_key(sink: FileSystemUploadSink):
    path = await sink.allocate("../../etc/passwd")

    assert Path(path).parent == sink.root
    assert ".._.._etc_passwd" in Path(path).name


@pytest.mark.asyncio
async def test_allocate_failure_raises_storage_allocation_failed(sink: FileSystemUploadSink):
    with patch("hippius_tus.storage.fs_sink.tempfile.mkstemp", side_effect=OSError("disk full")):
        with pytest.raises(StorageAllocationFailed):
            await sink.allocate("k")


@pytest.mark.asyncio
async def test_append_returns_new_length(sink: FileSystemUploadSink):
    path = await sink.allocate("k")

    assert await sink.append(path, b"hello") == 5
    assert await sink.append(path, b"world") == 10
    assert Path(path).read_bytes() == b"helloworld"
    assert await sink.size(path) == 10


@pytest.mark.asyncio
async def test_append_empty_chunk_is_noop(sink: FileSystemUploadSink):
    path = await sink.allocate("k")

    assert await sink.append(path, b"") == 0


@pytest.mark.asyncio
async def test_concurrent_appends_do_not_interleave(sink: FileSystemUploadSink):
    path = await sink.allocate("k")
    chunks = [bytes([i]) * 4096 for i in range(8)]

    await asyncio.gather(*(sink.append(path, c) for c in chunks))

    data = Path(path).read_bytes()
    assert len(data) == 8 * 4096
    blocks = {data[i : i + 4096] for i in range(0, len(data), 4096)}
    assert blocks == set(chunks)


@pytest.mark.asyncio
async def test_append_failure_rolls_back_and_raises(sink: FileSystemUploadSink):
    path = await sink.allocate("k")
    await sink.append(path, b"abc")

    with patch("hippius_tus.storage.fs_sink.os.fsync", side_effect=OSError("io error")):
        with pytest.raises(WriteFailed):
            await sink.append(path, b"defgh")

    assert Path(path).read_bytes() == b"abc"


@pytest.mark.asyncio
async def test_append_rejects_paths_outside_root(sink: FileSystemUploadSink, tmp_path: Path):
    outside = tmp_path / "elsewhere.bin"
    outside.write_bytes(b"")

    with pytest.raises(ValueError):
        await sink.append(str(outside), b"x")


@pytest.mark.asyncio
async def test_iter_chunks_streams_content(sink: FileSystemUploadSink):
    path = await sink.allocate("k")
    await sink.append(path, b"0123456789")

    assert list(sink.iter_chunks(path, chunk_size=4)) == [b"0123", b"4567", b"89"]


@pytest.mark.asyncio
async def test_delete_is_idempotent(sink: FileSystemUploadSink):
    path = await sink.allocate("k")

    await sink.delete(path)
    await sink.delete(path)

    assert not Path(path).exists()
    assert sink.list_files() == []


@pytest.mark.asyncio
async def test_truncate_shrinks_but_never_grows(sink: FileSystemUploadSink):
    path = await sink.allocate("k")
    await sink.append(path, b"helloworld")

    assert await sink.truncate(path, 5) == 5
    assert Path(path).read_bytes() == b"hello"

    assert await sink.truncate(path, 8) == 5
    assert Path(path).read_bytes() == b"hello"


@pytest.mark.asyncio
async def test_truncate_missing_file_raises_write_failed(sink: FileSystemUploadSink):
    path = await sink.allocate("k")
    Path(path).unlink()

    with pytest.raises(WriteFailed):
        await sink.truncate(path, 0)
