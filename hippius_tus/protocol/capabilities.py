from dataclasses import dataclass

from hippius_tus.protocol.metadata import SUPPORTED_CHECKSUM_ALGORITHMS


TUS_PROTOCOL_VERSION = "1.0.0"

TUS_EXTENSION_CREATION = "creation"
TUS_EXTENSION_CHECKSUM = "checksum"
TUS_EXTENSION_EXPIRATION = "expiration"

# termination and concatenation are not implemented
TUS_EXTENSIONS: tuple[str, ...] = (
    TUS_EXTENSION_CREATION,
    TUS_EXTENSION_CHECKSUM,
    TUS_EXTENSION_EXPIRATION,
)


def _escape_algorithm(name: str) -> str:
    return f"'{name}'" if "," in name else name


@dataclass(frozen=True)
class Capabilities:
    version: str
    extensions: tuple[str, ...]
    checksum_algorithms: tuple[str, ...]
    max_size: int = 0

    def to_headers(self) -> dict[str, str]:
        headers = {
            "Tus-Version": self.version,
            "Tus-Extension": ",".join(self.extensions),
            "Tus-Checksum-Algorithm": ",".join(self.checksum_algorithms),
        }
        if self.max_size > 0:
            headers["Tus-Max-Size"] = str(self.max_size)
        return headers


def describe_capabilities(max_size: int) -> Capabilities:
    """Advertise protocol version, extensions, checksum algorithms and size ceiling."""
    return Capabilities(
        version=TUS_PROTOCOL_VERSION,
        extensions=TUS_EXTENSIONS,
        checksum_algorithms=tuple(_escape_algorithm(a) for a in SUPPORTED_CHECKSUM_ALGORITHMS),
        max_size=max_size if max_size > 0 else 0,
    )
