"""PlantUML-server text encoding: raw DEFLATE, URL-safe base64, ``~1`` prefix."""

from __future__ import annotations

import base64
import zlib

# "~1" tells a PlantUML server the payload is deflated, then base64 (URL-safe).
TOKEN_PREFIX = "~1"


def normalize_source(source: str) -> str:
    """Normalise line endings to ``\\n`` and trim surrounding whitespace."""
    return source.replace("\r\n", "\n").replace("\r", "\n").strip()


def encode(source: str) -> str:
    """Encode diagram *source* into a URL-safe token."""
    data = normalize_source(source).encode("utf-8")
    # Negative wbits: raw deflate stream with no zlib header or checksum.
    compressor = zlib.compressobj(9, zlib.DEFLATED, -15)
    compressed = compressor.compress(data) + compressor.flush()
    token = base64.b64encode(compressed).decode("ascii")
    token = token.replace("+", "-").replace("/", "_").rstrip("=")
    return TOKEN_PREFIX + token


def decode(token: str) -> str:
    """Invert :func:`encode`, returning the normalised source."""
    if not token.startswith(TOKEN_PREFIX):
        raise ValueError(f"Not a deflate/base64 token (missing {TOKEN_PREFIX!r} prefix)")
    payload = token[len(TOKEN_PREFIX):].replace("-", "+").replace("_", "/")
    payload += "=" * (-len(payload) % 4)
    compressed = base64.b64decode(payload)
    return zlib.decompress(compressed, -15).decode("utf-8")


def diagram_url(source: str, server: str, fmt: str = "svg") -> str:
    """Build a ``<server>/<fmt>/<token>`` link for *source*."""
    return f"{server.rstrip('/')}/{fmt}/{encode(source)}"
