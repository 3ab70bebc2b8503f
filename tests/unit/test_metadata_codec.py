import base64
import hashlib

import pytest

from hippius_tus.errors import InvalidChecksumHeader
from hippius_tus.protocol.metadata import SUPPORTED_CHECKSUM_ALGORITHMS
from hippius_tus.protocol.metadata import parse_checksum_header
from hippius_tus.protocol.metadata import parse_metadata
from hippius_tus.protocol.metadata import serialize_metadata


def b64(value: bytes) -> str:
    return base64.b64encode(value).decode()


def test_parse_metadata_pairs():
    header = f"filename {b64(b'report.pdf')},filetype {b64(b'application/pdf')}"

    result = parse_metadata(header)

    assert result == {"filename": b"report.pdf", "filetype": b"application/pdf"}


def test_parse_metadata_preserves_order_and_trims_whitespace():
    header = f" b {b64(b'2')} ,  a {b64(b'1')}"

    result = parse_metadata(header)

    assert list(result) == ["b", "a"]
    assert result["a"] == b"1"


def test_parse_metadata_key_without_value_is_empty_bytes():
    result = parse_metadata(f"is_confidential,name {b64(b'x')}")

    assert result["is_confidential"] == b""
    assert result["name"] == b"x"


def test_parse_metadata_bad_base64_is_sentinel_not_error():
    result = parse_metadata("name not*base64!,other " + b64(b"ok"))

    assert result["name"] is None
    assert result["other"] == b"ok"


@pytest.mark.parametrize("header", [None, "", "   "])
def test_parse_metadata_empty_header(header):
    assert parse_metadata(header) == {}


def test_serialize_metadata_round_trips_values():
    metadata = {"filename": b"a.txt", "flag": b"", "broken": None}

    header = serialize_metadata(metadata)

    assert header == f"filename {b64(b'a.txt')},flag,broken"
    assert parse_metadata(header) == {"filename": b"a.txt", "flag": b"", "broken": b""}


def test_parse_checksum_header_returns_raw_digest():
    digest = hashlib.sha1(b"helloworld").digest()

    algorithm, parsed = parse_checksum_header(f"sha1 {b64(digest)}")

    assert algorithm == "sha1"
    assert parsed == digest


@pytest.mark.parametrize(
    "header",
    [
        "crc99 " + b64(b"abc"),
        "sha256",
        "sha256 ",
        "sha256 %%%notbase64",
        "shake_128 " + b64(b"abc"),
    ],
)
def test_parse_checksum_header_rejects_malformed(header):
    with pytest.raises(InvalidChecksumHeader) as exc_info:
        parse_checksum_header(header)

    assert exc_info.value.status_code == 400


def test_supported_algorithms_are_fixed_length_hashlib_names():
    assert "sha256" in SUPPORTED_CHECKSUM_ALGORITHMS
    assert "md5" in SUPPORTED_CHECKSUM_ALGORITHMS
    assert not any(name.startswith("shake_") for name in SUPPORTED_CHECKSUM_ALGORITHMS)
    assert list(SUPPORTED_CHECKSUM_ALGORITHMS) == sorted(SUPPORTED_CHECKSUM_ALGORITHMS)
