"""libvrm.pipeline

Export and import orchestration around the scene-graph collaborators.

Export:
  exporter.export(root) -> (document, buffers, node_map, skins)
  -> to_wire(ext)         (objects -> indices)
  -> attach as extensions["VRM"], declare in extensionsUsed
  -> pack_glb

Import:
  resolve every node/mesh/texture index through the loader, all at once
  -> from_wire(ext)       (indices -> objects)
  -> canonical extension + the loader's scene root

Every call builds its own context and mapper; nothing is shared between calls.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol, Sequence, Tuple

from .errors import ReferenceResolutionWarning, StructuralError
from .extension import ExportContext, ImportContext, from_wire, to_wire
from .model import ExtensionDocument
from .schema import DEFAULT_EXPORTER_VERSION, EXTENSION_NAME
from .writer import BytesLike, pack_glb

logger = logging.getLogger(__name__)


class SceneExporter(Protocol):
    def export(
        self, root: Any
    ) -> Tuple[Dict[str, Any], Sequence[BytesLike], Mapping[Any, int], Sequence[Any]]:
        ...


class SceneLoader(Protocol):
    scene: Any

    def get_node(self, index: int) -> Any:
        ...

    def get_mesh(self, index: int) -> Any:
        ...

    def get_texture(self, index: int) -> Any:
        ...


@dataclass
class VrmExport:
    data: bytes
    document: Dict[str, Any]
    warnings: List[ReferenceResolutionWarning] = field(default_factory=list)


@dataclass
class VrmImport:
    extension: ExtensionDocument
    scene: Any
    warnings: List[ReferenceResolutionWarning] = field(default_factory=list)


# ---- export ----

def attach_extension(document: Dict[str, Any], ext: Dict[str, Any], name: str = EXTENSION_NAME) -> Dict[str, Any]:
    """Put ext under document["extensions"][name] and declare it once in extensionsUsed."""

    logger.debug("Attaching %s extension", name)
    extensions = document.get("extensions")
    if not isinstance(extensions, dict):
        extensions = document["extensions"] = {}
    extensions[name] = ext

    used = [name, *(document.get("extensionsUsed") or [])]
    document["extensionsUsed"] = list(dict.fromkeys(used))
    return document


def export_vrm(
    root: Any,
    vrm: ExtensionDocument,
    exporter: SceneExporter,
    exporter_version: str = DEFAULT_EXPORTER_VERSION,
) -> VrmExport:
    document, buffers, node_map, skins = exporter.export(root)

    materials = document.get("materials", [])
    if len(vrm.material_properties) != len(materials):
        raise StructuralError(
            f"materialProperties has {len(vrm.material_properties)} entries "
            f"but the exported scene has {len(materials)} materials"
        )

    ctx = ExportContext(node_map=node_map, skins=skins, exporter_version=exporter_version)
    ext = to_wire(vrm, ctx)
    attach_extension(document, ext)

    data = pack_glb(document, buffers)
    if ctx.warnings:
        logger.warning("Exported with %d unresolved reference(s)", len(ctx.warnings))
    return VrmExport(data=data, document=document, warnings=ctx.warnings)


def serialize_vrm(
    root: Any,
    vrm: ExtensionDocument,
    exporter: SceneExporter,
    exporter_version: str = DEFAULT_EXPORTER_VERSION,
) -> bytes:
    return export_vrm(root, vrm, exporter, exporter_version).data


# ---- import ----

async def _call(getter, index: int) -> Any:
    out = getter(index)
    if inspect.isawaitable(out):
        out = await out
    return out


async def resolve_dependencies(document: Dict[str, Any], loader: SceneLoader) -> ImportContext:
    """Resolve every node, mesh and texture index of the document concurrently."""

    def _all(kind: str, getter):
        count = len(document.get(kind) or [])
        return asyncio.gather(*(_call(getter, i) for i in range(count)))

    nodes, meshes, textures = await asyncio.gather(
        _all("nodes", loader.get_node),
        _all("meshes", loader.get_mesh),
        _all("textures", loader.get_texture),
    )
    logger.debug("Resolved %d nodes, %d meshes, %d textures", len(nodes), len(meshes), len(textures))
    return ImportContext(nodes=list(nodes), meshes=list(meshes), textures=list(textures))


def _extension_block(document: Dict[str, Any], name: str) -> Any:
    extensions = document.get("extensions")
    if not isinstance(extensions, dict) or name not in extensions:
        raise StructuralError(f"Document has no {name} extension")
    return extensions[name]


async def parse_vrm(document: Dict[str, Any], loader: SceneLoader) -> VrmImport:
    ext = _extension_block(document, EXTENSION_NAME)

    ctx = await resolve_dependencies(document, loader)
    vrm = from_wire(ext, ctx)

    if ctx.warnings:
        logger.warning("Imported with %d unresolved reference(s)", len(ctx.warnings))
    return VrmImport(extension=vrm, scene=getattr(loader, "scene", None), warnings=ctx.warnings)


def load_vrm(document: Dict[str, Any], loader: SceneLoader) -> VrmImport:
    """Blocking wrapper around parse_vrm for callers without an event loop."""
    return asyncio.run(parse_vrm(document, loader))
