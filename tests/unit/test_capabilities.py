from hippius_tus.protocol.capabilities import TUS_PROTOCOL_VERSION
from hippius_tus.protocol.capabilities import _escape_algorithm
from hippius_tus.protocol.capabilities import describe_capabilities
from hippius_tus.protocol.metadata import SUPPORTED_CHECKSUM_ALGORITHMS


def test_describe_capabilities_without_ceiling():
    caps = describe_capabilities(0)
    headers = caps.to_headers()

    assert caps.version == "1.0.0" == TUS_PROTOCOL_VERSION
    assert headers["Tus-Version"] == "1.0.0"
    assert headers["Tus-Extension"] == "creation,checksum,expiration"
    assert headers["Tus-Checksum-Algorithm"].split(",") == list(SUPPORTED_CHECKSUM_ALGORITHMS)
    assert "Tus-Max-Size" not in headers


def test_describe_capabilities_with_ceiling():
    headers = describe_capabilities(1024).to_headers()

    assert headers["Tus-Max-Size"] == "1024"


def test_unimplemented_extensions_not_advertised():
    extensions = describe_capabilities(0).extensions

    assert "termination" not in extensions
    assert "concatenation" not in extensions


def test_algorithm_names_with_commas_are_quoted():
    assert _escape_algorithm("sha256") == "sha256"
    assert _escape_algorithm("weird,algo") == "'weird,algo'"
