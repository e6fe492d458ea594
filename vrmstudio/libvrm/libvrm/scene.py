"""libvrm.scene

Minimal scene-graph collaborators backed by a parsed glTF document.

There is no renderer here: a "scene object" is just a handle on one entry of
the document's nodes/meshes/textures arrays. That is enough to drive the
import pipeline from a file on disk and to re-export the same document
(repack) without a 3D engine.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import StructuralError
from .model import GlbFile
from .schema import EXTENSION_NAME


@dataclass(eq=False)
class SceneObject:
    """Identity-compared handle on one document entry."""

    kind: str   # 'nodes', 'meshes', 'textures', 'scenes'
    index: int
    data: Dict[str, Any]

    @property
    def name(self) -> Optional[str]:
        return self.data.get("name")

    def __repr__(self) -> str:
        return f"SceneObject({self.kind}[{self.index}] {self.name!r})"


class DocumentLoader:
    """Resolves document indices to SceneObjects, memoized per (kind, index)."""

    def __init__(self, document: Dict[str, Any], binary: bytes = b""):
        self.document = document
        self.binary = binary
        self._cache: Dict[Tuple[str, int], SceneObject] = {}

        scene_index = document.get("scene", 0)
        scenes = document.get("scenes") or [{}]
        if isinstance(scene_index, bool) or not isinstance(scene_index, int) or not 0 <= scene_index < len(scenes):
            raise StructuralError(f"scene index {scene_index!r} is out of range ({len(scenes)} scenes)")
        self.scene = SceneObject("scenes", scene_index, scenes[scene_index])

    @classmethod
    def from_glb(cls, glb: GlbFile) -> "DocumentLoader":
        return cls(glb.document, glb.binary)

    def _get(self, kind: str, index: int) -> SceneObject:
        key = (kind, index)
        obj = self._cache.get(key)
        if obj is None:
            items = self.document.get(kind) or []
            if not 0 <= index < len(items):
                raise IndexError(f"{kind}[{index}] out of range ({len(items)})")
            obj = SceneObject(kind, index, items[index])
            self._cache[key] = obj
        return obj

    def node(self, index: int) -> SceneObject:
        return self._get("nodes", index)

    def mesh(self, index: int) -> SceneObject:
        return self._get("meshes", index)

    def texture(self, index: int) -> SceneObject:
        return self._get("textures", index)

    def count(self, kind: str) -> int:
        return len(self.document.get(kind) or [])

    # SceneLoader protocol

    async def get_node(self, index: int) -> SceneObject:
        return self.node(index)

    async def get_mesh(self, index: int) -> SceneObject:
        return self.mesh(index)

    async def get_texture(self, index: int) -> SceneObject:
        return self.texture(index)


class DocumentExporter:
    """Exports the loader's document back out, unchanged apart from the VRM block.

    Skins are listed in mesh order, so the exporter's skin-based mesh lookup
    lands on the original mesh index.
    """

    def __init__(self, loader: DocumentLoader):
        self.loader = loader

    def export(self, root: Any) -> Tuple[Dict[str, Any], List[bytes], Dict[SceneObject, int], List[SceneObject]]:
        loader = self.loader
        document = copy.deepcopy(loader.document)
        extensions = document.get("extensions")
        if isinstance(extensions, dict):
            extensions.pop(EXTENSION_NAME, None)

        binary = loader.binary
        buffers = document.get("buffers") or []
        if buffers and isinstance(buffers[0], dict) and isinstance(buffers[0].get("byteLength"), int):
            # BIN chunk body may carry trailing padding
            binary = binary[: buffers[0]["byteLength"]]

        node_map = {loader.node(i): i for i in range(loader.count("nodes"))}
        skins = [loader.mesh(i) for i in range(loader.count("meshes"))]
        return document, [binary], node_map, skins
