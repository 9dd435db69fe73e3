"""PlantUML text encoding for server URLs.

Raw deflate (level 9, no zlib header or checksum) followed by PlantUML's
6-bit alphabet ``0-9A-Za-z-_``. Trailing groups are not padded: two
leftover bytes give three characters, one leftover byte gives two.
"""

import logging
import zlib

from ..errors import CodecError

logger = logging.getLogger(__name__)

PLANTUML_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"

# Pre-encoded stand-in diagram used when compression fails
FALLBACK_ENCODED = "SoWkIImgAStDuNBAJrBGjLDmpCbCJbMmKiX8pSd9vt98pKi1IW80"

DEFAULT_SERVER_URL = "https://www.plantuml.com/plantuml"


def _encode6bit(b: int) -> str:
    return PLANTUML_ALPHABET[b & 0x3F]


def encode_bytes(data: bytes) -> str:
    """Pack bytes into PlantUML's 6-bit alphabet."""
    out = []
    full = len(data) - len(data) % 3

    for i in range(0, full, 3):
        b1, b2, b3 = data[i], data[i + 1], data[i + 2]
        out.append(_encode6bit(b1 >> 2))
        out.append(_encode6bit(((b1 & 0x3) << 4) | (b2 >> 4)))
        out.append(_encode6bit(((b2 & 0xF) << 2) | (b3 >> 6)))
        out.append(_encode6bit(b3 & 0x3F))

    rest = len(data) - full
    if rest == 2:
        b1, b2 = data[full], data[full + 1]
        out.append(_encode6bit(b1 >> 2))
        out.append(_encode6bit(((b1 & 0x3) << 4) | (b2 >> 4)))
        out.append(_encode6bit((b2 & 0xF) << 2))
    elif rest == 1:
        b1 = data[full]
        out.append(_encode6bit(b1 >> 2))
        out.append(_encode6bit((b1 & 0x3) << 4))

    return "".join(out)


def deflate_raw(text: str) -> bytes:
    """Raw deflate of the UTF-8 text at maximum compression.

    Raises:
        CodecError: If the text cannot be encoded or compressed
    """
    try:
        compressor = zlib.compressobj(9, zlib.DEFLATED, -15)
        return compressor.compress(text.encode("utf-8")) + compressor.flush()
    except (zlib.error, UnicodeEncodeError, AttributeError) as e:
        raise CodecError(f"Cannot compress diagram text: {e}") from e


def encode_diagram(text: str) -> str:
    """Encode diagram text into a URL-safe PlantUML token.

    Never raises: a compression failure yields ``FALLBACK_ENCODED``.
    """
    try:
        data = deflate_raw(text)
    except CodecError as e:
        logger.error("%s, using fallback diagram", e)
        return FALLBACK_ENCODED
    return encode_bytes(data)


def plantuml_url(text: str, server_url: str = DEFAULT_SERVER_URL, fmt: str = "svg") -> str:
    """Full rendering-server URL for the diagram text."""
    return f"{server_url.rstrip('/')}/{fmt}/{encode_diagram(text)}"
