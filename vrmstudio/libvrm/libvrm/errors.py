"""libvrm.errors

Exceptions raised by the container codec and the extension codec.

Fatal problems derive from VrmError and abort the current conversion.
ReferenceResolutionWarning is never raised: the mapper records it and moves on.
"""

from __future__ import annotations


class VrmError(RuntimeError):
    pass


class EncodingError(VrmError):
    """The document could not be turned into the UTF-8 JSON chunk."""


class StructuralError(VrmError):
    """A required collection is absent or has the wrong shape."""


class ContainerReadError(VrmError):
    pass


class ReferenceResolutionWarning(UserWarning):
    """A single node/mesh/texture reference had no match; index 0 was used."""

    def __init__(self, kind: str, ref: object, path: str):
        self.kind = kind
        self.ref = ref
        self.path = path
        super().__init__(f"{kind} reference {ref!r} at {path} could not be resolved, using 0")
