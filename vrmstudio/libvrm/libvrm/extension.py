"""libvrm.extension

VRM extension codec: wire JSON <-> canonical ExtensionDocument.

  to_wire(ext, ExportContext)   -> dict ready for json["extensions"]["VRM"]
  from_wire(dict, ImportContext) -> ExtensionDocument holding scene objects

Both directions go through the same ReferenceMapper walk; the contexts only
decide what a reference means on each side. Opaque blocks (meta,
materialValues, float/vector properties, keywordMap, tagMap, look-at degree
maps, bone limits) are copied without looking inside.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import ReferenceResolutionWarning, StructuralError
from .mapper import ReferenceMapper, Resolvers
from .model import (
    BlendShapeBind,
    BlendShapeGroup,
    BlendShapeMaster,
    ExtensionDocument,
    FirstPerson,
    Humanoid,
    HumanoidBone,
    MaterialProperties,
    MeshAnnotation,
)
from .schema import DEFAULT_EXPORTER_VERSION, HUMANOID_BONES, normalize_preset_name

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXTURE_INDEX = 0

_MISSING = object()


# -----------------------------
# Conversion contexts
# -----------------------------

def skin_index_for_mesh(skins: Sequence[Any], mesh_ref: Any) -> int:
    """Export-side mesh resolution.

    The reference is looked up in the exporter's *skin* list, not its mesh
    list: the position of the skin equal to the reference (or to its first
    member, when the reference is a group of primitives) is written out as the
    mesh index. This follows how the upstream exporter lines skinned-mesh
    instances up with meshes. Keep it as-is unless the intended semantics are
    confirmed to differ.
    """
    probe = mesh_ref
    if isinstance(mesh_ref, (list, tuple)):
        if not mesh_ref:
            raise LookupError("empty mesh reference")
        probe = mesh_ref[0]
    for i, skin in enumerate(skins):
        if skin is probe or skin == probe:
            return i
    raise LookupError(f"{probe!r} not found in skins")


@dataclass
class ExportContext:
    """What the scene exporter produced for one export call."""

    node_map: Mapping[Any, int]
    skins: Sequence[Any]
    exporter_version: str = DEFAULT_EXPORTER_VERSION
    warnings: List[ReferenceResolutionWarning] = field(default_factory=list)

    def _node(self, ref: Any) -> int:
        try:
            return self.node_map[ref]
        except TypeError as e:  # unhashable handle
            raise LookupError(ref) from e

    def _mesh(self, ref: Any) -> int:
        return skin_index_for_mesh(self.skins, ref)

    def _texture(self, ref: Any) -> int:
        # Texture export is not wired to the exporter's texture list yet.
        logger.debug("map_texture %r -> placeholder %d", ref, PLACEHOLDER_TEXTURE_INDEX)
        return PLACEHOLDER_TEXTURE_INDEX

    def resolvers(self) -> Resolvers:
        return Resolvers(node=self._node, mesh=self._mesh, texture=self._texture)


def _index_lookup(items: Sequence[Any]):
    def resolve(index: Any) -> Any:
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise LookupError(index)
        return items[index]
    return resolve


@dataclass
class ImportContext:
    """Already-resolved scene objects, indexed like the document arrays."""

    nodes: Sequence[Any]
    meshes: Sequence[Any]
    textures: Sequence[Any]
    warnings: List[ReferenceResolutionWarning] = field(default_factory=list)

    def resolvers(self) -> Resolvers:
        return Resolvers(
            node=_index_lookup(self.nodes),
            mesh=_index_lookup(self.meshes),
            texture=_index_lookup(self.textures),
        )


# -----------------------------
# Wire JSON -> model
# -----------------------------

def _obj(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise StructuralError(f"{path}: expected an object, got {type(value).__name__}")
    return value


def _list(parent: Dict[str, Any], key: str, path: str, default: Any = _MISSING) -> List[Any]:
    value = parent.get(key, _MISSING)
    if value is _MISSING:
        if default is _MISSING:
            raise StructuralError(f"{path}.{key} is missing")
        return list(default)
    if not isinstance(value, list):
        raise StructuralError(f"{path}.{key}: expected an array, got {type(value).__name__}")
    return value


def _bind_from_json(d: Dict[str, Any]) -> BlendShapeBind:
    return BlendShapeBind(mesh=d.get("mesh"), index=d.get("index"), weight=d.get("weight"))


def _group_from_json(d: Dict[str, Any], path: str) -> BlendShapeGroup:
    return BlendShapeGroup(
        name=d.get("name"),
        preset_name=d.get("presetName"),
        binds=[
            _bind_from_json(_obj(b, f"{path}.binds[{i}]"))
            for i, b in enumerate(_list(d, "binds", path, default=()))
        ],
        material_values=d.get("materialValues"),
    )


def _bone_from_json(d: Dict[str, Any]) -> HumanoidBone:
    return HumanoidBone(
        bone=d.get("bone"),
        node=d.get("node"),
        use_default_values=d.get("useDefaultValues"),
        min=d.get("min"),
        max=d.get("max"),
        center=d.get("center"),
        axis_length=d.get("axisLength"),
    )


def _humanoid_from_json(d: Dict[str, Any]) -> Humanoid:
    return Humanoid(
        human_bones=[
            _bone_from_json(_obj(b, f"humanoid.humanBones[{i}]"))
            for i, b in enumerate(_list(d, "humanBones", "humanoid"))
        ],
        arm_stretch=d.get("armStretch"),
        leg_stretch=d.get("legStretch"),
        upper_arm_twist=d.get("upperArmTwist"),
        lower_arm_twist=d.get("lowerArmTwist"),
        upper_leg_twist=d.get("upperLegTwist"),
        lower_leg_twist=d.get("lowerLegTwist"),
        feet_spacing=d.get("feetSpacing"),
        has_translation_dof=d.get("hasTranslationDoF"),
    )


def _annotation_from_json(d: Dict[str, Any]) -> MeshAnnotation:
    return MeshAnnotation(mesh=d.get("mesh"), first_person_flag=d.get("firstPersonFlag"))


def _firstperson_from_json(d: Dict[str, Any]) -> FirstPerson:
    return FirstPerson(
        first_person_bone=d.get("firstPersonBone"),
        first_person_bone_offset=d.get("firstPersonBoneOffset"),
        mesh_annotations=[
            _annotation_from_json(_obj(a, f"firstPerson.meshAnnotations[{i}]"))
            for i, a in enumerate(_list(d, "meshAnnotations", "firstPerson", default=()))
        ],
        look_at_type_name=d.get("lookAtTypeName"),
        look_at_horizontal_inner=d.get("lookAtHorizontalInner"),
        look_at_horizontal_outer=d.get("lookAtHorizontalOuter"),
        look_at_vertical_down=d.get("lookAtVerticalDown"),
        look_at_vertical_up=d.get("lookAtVerticalUp"),
    )


def _material_from_json(d: Dict[str, Any], path: str) -> MaterialProperties:
    tex_props = d.get("textureProperties", {})
    if not isinstance(tex_props, dict):
        raise StructuralError(f"{path}.textureProperties: expected an object")
    return MaterialProperties(
        name=d.get("name"),
        shader=d.get("shader"),
        render_queue=d.get("renderQueue"),
        float_properties=d.get("floatProperties"),
        vector_properties=d.get("vectorProperties"),
        texture_properties=dict(tex_props),
        keyword_map=d.get("keywordMap"),
        tag_map=d.get("tagMap"),
    )


def extension_from_json(vrm: Any) -> ExtensionDocument:
    """Parse the wire extension block. References stay as they are on the wire."""

    vrm = _obj(vrm, "VRM")
    master = _obj(vrm.get("blendShapeMaster"), "blendShapeMaster")

    groups = []
    for i, g in enumerate(_list(master, "blendShapeGroups", "blendShapeMaster")):
        path = f"blendShapeMaster.blendShapeGroups[{i}]"
        groups.append(_group_from_json(_obj(g, path), path))

    return ExtensionDocument(
        blend_shape_master=BlendShapeMaster(blend_shape_groups=groups),
        humanoid=_humanoid_from_json(_obj(vrm.get("humanoid"), "humanoid")),
        first_person=_firstperson_from_json(_obj(vrm.get("firstPerson"), "firstPerson")),
        material_properties=[
            _material_from_json(_obj(m, f"materialProperties[{i}]"), f"materialProperties[{i}]")
            for i, m in enumerate(_list(vrm, "materialProperties", "VRM"))
        ],
        meta=vrm.get("meta"),
        secondary_animation=vrm.get("secondaryAnimation") or {},
    )


# -----------------------------
# Model -> wire JSON
# -----------------------------

def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    # Optional fields absent from the model stay absent on the wire.
    return {k: v for k, v in d.items() if v is not None}


def extension_to_json(vrm: ExtensionDocument) -> Dict[str, Any]:
    master = {
        "blendShapeGroups": [
            _compact({
                "name": g.name,
                "presetName": g.preset_name,
                "binds": [
                    _compact({"mesh": b.mesh, "index": b.index, "weight": b.weight})
                    for b in g.binds
                ],
                "materialValues": g.material_values,
            })
            for g in vrm.blend_shape_master.blend_shape_groups
        ],
    }

    h = vrm.humanoid
    humanoid = _compact({
        "humanBones": [
            _compact({
                "bone": b.bone,
                "node": b.node,
                "useDefaultValues": b.use_default_values,
                "min": b.min,
                "max": b.max,
                "center": b.center,
                "axisLength": b.axis_length,
            })
            for b in h.human_bones
        ],
        "armStretch": h.arm_stretch,
        "legStretch": h.leg_stretch,
        "upperArmTwist": h.upper_arm_twist,
        "lowerArmTwist": h.lower_arm_twist,
        "upperLegTwist": h.upper_leg_twist,
        "lowerLegTwist": h.lower_leg_twist,
        "feetSpacing": h.feet_spacing,
        "hasTranslationDoF": h.has_translation_dof,
    })

    fp = vrm.first_person
    first_person = _compact({
        "firstPersonBone": fp.first_person_bone,
        "firstPersonBoneOffset": fp.first_person_bone_offset,
        "meshAnnotations": [
            _compact({"mesh": a.mesh, "firstPersonFlag": a.first_person_flag})
            for a in fp.mesh_annotations
        ],
        "lookAtTypeName": fp.look_at_type_name,
        "lookAtHorizontalInner": fp.look_at_horizontal_inner,
        "lookAtHorizontalOuter": fp.look_at_horizontal_outer,
        "lookAtVerticalDown": fp.look_at_vertical_down,
        "lookAtVerticalUp": fp.look_at_vertical_up,
    })

    materials = [
        _compact({
            "name": m.name,
            "shader": m.shader,
            "renderQueue": m.render_queue,
            "floatProperties": m.float_properties,
            "vectorProperties": m.vector_properties,
            "textureProperties": dict(m.texture_properties),
            "keywordMap": m.keyword_map,
            "tagMap": m.tag_map,
        })
        for m in vrm.material_properties
    ]

    return _compact({
        "blendShapeMaster": master,
        "humanoid": humanoid,
        "firstPerson": first_person,
        "materialProperties": materials,
        "meta": vrm.meta,
        "secondaryAnimation": dict(vrm.secondary_animation),
    })


# -----------------------------
# Codec entry points
# -----------------------------

def check_humanoid_bones(humanoid: Humanoid) -> None:
    seen = set()
    for b in humanoid.human_bones:
        if not isinstance(b.bone, str):
            raise StructuralError(f"humanoid bone name must be a string, got {b.bone!r}")
        if b.bone in seen:
            raise StructuralError(f"humanoid bone {b.bone!r} is mapped more than once")
        seen.add(b.bone)
        if b.bone not in HUMANOID_BONES:
            logger.warning("Unknown humanoid bone name %r", b.bone)


def normalize_presets(vrm: ExtensionDocument) -> ExtensionDocument:
    """Rewrite preset names outside the vocabulary to "unknown", in place."""
    for g in vrm.blend_shape_master.blend_shape_groups:
        g.preset_name = normalize_preset_name(g.preset_name)
    return vrm


def to_wire(vrm: ExtensionDocument, ctx: ExportContext) -> Dict[str, Any]:
    check_humanoid_bones(vrm.humanoid)

    mapper = ReferenceMapper(ctx.resolvers())
    ext_with_ids = extension_to_json(normalize_presets(mapper.convert(vrm)))
    ext_with_ids["exporterVersion"] = ctx.exporter_version

    ctx.warnings.extend(mapper.warnings)
    return ext_with_ids


def from_wire(vrm: Any, ctx: ImportContext) -> ExtensionDocument:
    parsed = extension_from_json(vrm)
    check_humanoid_bones(parsed.humanoid)

    mapper = ReferenceMapper(ctx.resolvers())
    out = normalize_presets(mapper.convert(parsed))

    ctx.warnings.extend(mapper.warnings)
    return out


def referenced_indices(vrm: Any) -> Dict[str, List[int]]:
    """Integer references used by a wire extension block, grouped by kind.

    Handy for diagnostics; the import pipeline resolves whole arrays anyway.
    """
    parsed = extension_from_json(vrm)
    out: Dict[str, List[int]] = {"node": [], "mesh": [], "texture": []}

    def _add(kind: str, value: Optional[Any]) -> None:
        if isinstance(value, int) and not isinstance(value, bool) and value not in out[kind]:
            out[kind].append(value)

    for g in parsed.blend_shape_master.blend_shape_groups:
        for b in g.binds:
            _add("mesh", b.mesh)
    for bone in parsed.humanoid.human_bones:
        _add("node", bone.node)
    _add("node", parsed.first_person.first_person_bone)
    for a in parsed.first_person.mesh_annotations:
        _add("mesh", a.mesh)
    for m in parsed.material_properties:
        for ref in m.texture_properties.values():
            _add("texture", ref)

    for v in out.values():
        v.sort()
    return out
