from __future__ import annotations
import os
from typing import Dict, List
from .errors import StructuralError
from .extension import extension_from_json, referenced_indices
from .model import VrmBlendShapeInfo, VrmSummary
from .reader import read_glb
from .schema import EXTENSION_NAME

_ARRAYS = {"node": "nodes", "mesh": "meshes", "texture": "textures"}

def _dangling(document: dict, refs: Dict[str, List[int]]) -> Dict[str, List[int]]:
    out = {}
    for kind, indices in refs.items():
        count = len(document.get(_ARRAYS[kind]) or [])
        bad = [i for i in indices if i < 0 or i >= count]
        if bad:
            out[kind] = bad
    return out

def summarize_vrm(path: str) -> VrmSummary:
    size = os.path.getsize(path)
    glb = read_glb(path)
    doc = glb.document

    json_len = glb.chunks[0].length
    bin_len = sum(ch.length for ch in glb.chunks if ch.type_tag == "BIN")

    ext = (doc.get("extensions") or {}).get(EXTENSION_NAME)
    if ext is None:
        raise StructuralError(f"{path} has no {EXTENSION_NAME} extension")
    vrm = extension_from_json(ext)
    meta = vrm.meta or {}

    # Bone -> node index, straight from the wire (no scene objects needed).
    bones: Dict[str, int] = {}
    duplicates: List[str] = []
    for b in vrm.humanoid.human_bones:
        if not isinstance(b.bone, str):
            continue
        if b.bone in bones and b.bone not in duplicates:
            duplicates.append(b.bone)
        bones.setdefault(b.bone, b.node)
    shapes = [
        VrmBlendShapeInfo(name=g.name, preset_name=g.preset_name, binds=len(g.binds))
        for g in vrm.blend_shape_master.blend_shape_groups
    ]

    return VrmSummary(
        path=path,
        file_size=size,
        version=glb.header.version,
        json_length=json_len,
        bin_length=bin_len,
        extensions_used=list(doc.get("extensionsUsed") or []),
        title=meta.get("title"),
        author=meta.get("author"),
        model_version=meta.get("version"),
        exporter_version=ext.get("exporterVersion"),
        node_count=len(doc.get("nodes") or []),
        mesh_count=len(doc.get("meshes") or []),
        material_count=len(doc.get("materials") or []),
        texture_count=len(doc.get("textures") or []),
        human_bones=bones,
        blend_shapes=shapes,
        dangling=_dangling(doc, referenced_indices(ext)),
        duplicate_bones=duplicates,
    )
