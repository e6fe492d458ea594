"""libvrm.reader

Chunk-preserving GLB/VRM reader.

- We parse the 12-byte header and check magic + version.
- Then we iterate chunks until the declared total length.
- Every chunk (known or unknown) is preserved verbatim; the JSON chunk is
  also decoded into GlbFile.document.

The import pipeline starts from GlbFile.document; the BIN chunk is only needed
by whoever resolves node/mesh/texture indices into real objects.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass

from .errors import ContainerReadError
from .model import GlbChunk, GlbFile, GlbHeader
from .writer import (
    GLB_CHUNK_PREFIX_BYTES,
    GLB_CHUNK_TYPE_JSON,
    GLB_HEADER_BYTES,
    GLB_MAGIC,
    GLB_VERSION,
)


@dataclass
class _Bin:
    data: bytes
    ofs: int = 0

    def tell(self) -> int:
        return self.ofs

    def read(self, n: int) -> bytes:
        b = self.data[self.ofs : self.ofs + n]
        if len(b) != n:
            raise ContainerReadError(f"Unexpected EOF at {self.ofs}, need {n}")
        self.ofs += n
        return b

    def u32(self) -> int:
        return struct.unpack("<I", self.read(4))[0]


def _tag_from_int(i: int) -> str:
    return struct.pack("<I", i & 0xFFFFFFFF).decode("ascii", errors="replace").rstrip("\x00")


def _parse_header(b: _Bin) -> GlbHeader:
    if len(b.data) < GLB_HEADER_BYTES:
        raise ContainerReadError("Not a GLB file (shorter than the 12-byte header)")

    magic = b.u32()
    if magic != GLB_MAGIC:
        raise ContainerReadError("Not a GLB file (missing 'glTF' magic)")

    version = b.u32()
    if version != GLB_VERSION:
        raise ContainerReadError(f"Unsupported GLB version {version} (expected {GLB_VERSION})")

    length = b.u32()
    if length > len(b.data):
        raise ContainerReadError(f"Header length {length} exceeds data size {len(b.data)}")

    return GlbHeader(magic=magic, version=version, length=length)


def parse_glb(data: bytes) -> GlbFile:
    b = _Bin(bytes(data))
    header = _parse_header(b)
    end = header.length

    chunks: list[GlbChunk] = []
    while b.tell() + GLB_CHUNK_PREFIX_BYTES <= end:
        chunk_ofs = b.tell()
        length = b.u32()
        type_int = b.u32()

        if b.tell() + length > end:
            raise ContainerReadError(
                f"Chunk overruns file: type={_tag_from_int(type_int)} len={length} at {chunk_ofs}"
            )
        if length % 4:
            raise ContainerReadError(
                f"Chunk is not 4-byte aligned: type={_tag_from_int(type_int)} len={length} at {chunk_ofs}"
            )

        chunks.append(
            GlbChunk(
                type_int=type_int,
                type_tag=_tag_from_int(type_int),
                length=length,
                body=b.read(length),
                offset=chunk_ofs,
            )
        )

    if not chunks or chunks[0].type_int != GLB_CHUNK_TYPE_JSON:
        raise ContainerReadError("First chunk must be the JSON chunk")

    try:
        document = json.loads(chunks[0].body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ContainerReadError(f"JSON chunk is not valid UTF-8 JSON: {e}") from e
    if not isinstance(document, dict):
        raise ContainerReadError("JSON chunk must hold an object")

    return GlbFile(header=header, chunks=chunks, document=document)


def read_glb(path: str) -> GlbFile:
    with open(path, "rb") as f:
        data = f.read()
    return parse_glb(data)
