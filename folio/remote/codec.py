"""
Transport Codec
===============
Path and payload encoding for the remote content store.
"""

import base64
import binascii
import hashlib
from urllib.parse import quote

from folio.errors import TransportError


def encode_path(path: str) -> str:
    """
    Percent-encode each path segment on its own.

    Slashes stay structural separators; leading, trailing and doubled
    slashes are dropped.
    """
    segments = [segment for segment in path.split("/") if segment]
    return "/".join(quote(segment, safe="") for segment in segments)


def encode_text(text: str) -> bytes:
    return text.encode("utf-8")


def decode_text(data: bytes) -> str:
    return data.decode("utf-8")


def encode_content(data: bytes) -> str:
    """Base64 transport form of raw bytes."""
    return base64.b64encode(data).decode("ascii")


def decode_content(payload: str, path: str = None) -> bytes:
    """
    Decode a base64 transport payload.

    Line breaks inserted by the server are ignored.
    """
    compact = "".join((payload or "").split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TransportError("response content is not valid base64", details=str(exc), path=path) from exc


def blob_sha(data: bytes) -> str:
    """Git blob object id of the bytes, used as a version token."""
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()
