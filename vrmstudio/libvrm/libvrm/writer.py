"""libvrm.writer

GLB container writer.

Output layout (every integer is little-endian uint32):

  header : magic, version (2), total length
  JSON   : chunk length, 'JSON', UTF-8 document padded with spaces
  BIN    : chunk length, 'BIN\\0', merged buffers padded with zero bytes

All input buffers are merged into the single BIN chunk, and the document's
first buffer entry gets the merged (unpadded) size as its byteLength. Padding
only changes the physical chunk length, never the byteLength in the JSON.
"""

from __future__ import annotations

import json
import logging
import struct
from typing import Any, Dict, Iterable, Union

from .errors import EncodingError, StructuralError

logger = logging.getLogger(__name__)

GLB_MAGIC = 0x46546C67  # 'glTF'
GLB_VERSION = 2
GLB_HEADER_BYTES = 12
GLB_CHUNK_PREFIX_BYTES = 8
GLB_CHUNK_TYPE_JSON = 0x4E4F534A  # 'JSON'
GLB_CHUNK_TYPE_BIN = 0x004E4942   # 'BIN\0'

JSON_PADDING = 0x20
BIN_PADDING = 0x00

BytesLike = Union[bytes, bytearray, memoryview]


# ---- padding ----

def padded_size(n: int) -> int:
    """Smallest multiple of 4 that is >= n."""
    return (n + 3) & ~3


def pad_buffer(data: BytesLike, fill: int = BIN_PADDING) -> BytesLike:
    """Pad data to a 4-byte boundary with the given fill byte.

    An already aligned buffer is returned as-is (same object, no copy).
    """
    size = len(data)
    target = padded_size(size)
    if target == size:
        return data
    return bytes(data) + bytes([fill]) * (target - size)


# ---- chunk assembly ----

def merge_buffers(buffers: Iterable[BytesLike]) -> bytes:
    return b"".join(bytes(b) for b in buffers)


def encode_json_chunk(document: Dict[str, Any]) -> bytes:
    try:
        text = json.dumps(document, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
        return text.encode("utf-8")
    except (TypeError, ValueError) as e:
        # ValueError covers NaN/Infinity and UnicodeEncodeError (lone surrogates).
        raise EncodingError(f"Document cannot be encoded as JSON: {e}") from e


def _with_buffer_length(document: Dict[str, Any], byte_length: int) -> Dict[str, Any]:
    # Shallow copies down to buffers[0]; the caller's document stays untouched.
    buffers = document.get("buffers")
    if not buffers:
        if byte_length:
            raise StructuralError(
                f"Document declares no buffers but {byte_length} bytes of buffer data were given"
            )
        return document
    if not isinstance(buffers, list) or not isinstance(buffers[0], dict):
        raise StructuralError("Document 'buffers' must be a list of objects")

    out = dict(document)
    out["buffers"] = list(buffers)
    out["buffers"][0] = dict(buffers[0], byteLength=byte_length)
    return out


def _chunk(type_int: int, payload: BytesLike) -> bytes:
    return struct.pack("<II", len(payload), type_int) + bytes(payload)


def pack_glb(document: Dict[str, Any], buffers: Iterable[BytesLike]) -> bytes:
    """Serialize a glTF document plus its raw buffers into one GLB byte string."""

    merged = merge_buffers(buffers)
    document = _with_buffer_length(document, len(merged))

    bin_chunk = pad_buffer(merged, BIN_PADDING)
    json_chunk = pad_buffer(encode_json_chunk(document), JSON_PADDING)

    total = (
        GLB_HEADER_BYTES
        + GLB_CHUNK_PREFIX_BYTES + len(json_chunk)
        + GLB_CHUNK_PREFIX_BYTES + len(bin_chunk)
    )

    logger.debug("GLB: json=%d bin=%d (merged %d) total=%d",
                 len(json_chunk), len(bin_chunk), len(merged), total)

    return b"".join([
        struct.pack("<III", GLB_MAGIC, GLB_VERSION, total),
        _chunk(GLB_CHUNK_TYPE_JSON, json_chunk),
        _chunk(GLB_CHUNK_TYPE_BIN, bin_chunk),
    ])


def write_glb(out_path: str, document: Dict[str, Any], buffers: Iterable[BytesLike]) -> int:
    """Write a GLB to disk. Returns the number of bytes written."""

    data = pack_glb(document, buffers)
    with open(out_path, "wb") as f:
        f.write(data)
    return len(data)
