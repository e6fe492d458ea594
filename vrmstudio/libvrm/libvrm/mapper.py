"""libvrm.mapper

Traversal & mapping of glTF references (node, mesh, texture) inside the VRM
extension structure.

The walk is written once and used in both directions:

  export: scene objects -> integer indices
  import: integer indices -> scene objects

Only the three resolver functions differ. A resolver reports "no match" by
raising LookupError (KeyError / IndexError) or returning None; the mapper then
writes 0 into that one field, logs it and keeps going. One dangling
cross-reference must not sink the rest of the avatar.

Schema reference:
  https://github.com/vrm-c/vrm-specification/tree/master/specification/0.0/schema
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, List, NamedTuple

from .errors import ReferenceResolutionWarning
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

logger = logging.getLogger(__name__)

UNRESOLVED_INDEX = 0

Resolver = Callable[[Any], Any]


class Resolvers(NamedTuple):
    node: Resolver
    mesh: Resolver
    texture: Resolver


class ReferenceMapper:
    def __init__(self, resolvers: Resolvers):
        self.resolvers = resolvers
        self.warnings: List[ReferenceResolutionWarning] = []

    # ---- reference fields ----

    def _resolve(self, kind: str, resolver: Resolver, ref: Any, path: str) -> Any:
        try:
            out = resolver(ref)
        except LookupError:
            out = None
        if out is None:
            w = ReferenceResolutionWarning(kind, ref, path)
            logger.warning("%s", w)
            self.warnings.append(w)
            return UNRESOLVED_INDEX
        return out

    def map_node(self, ref: Any, path: str) -> Any:
        return self._resolve("node", self.resolvers.node, ref, path)

    def map_mesh(self, ref: Any, path: str) -> Any:
        return self._resolve("mesh", self.resolvers.mesh, ref, path)

    def map_texture(self, ref: Any, path: str) -> Any:
        return self._resolve("texture", self.resolvers.texture, ref, path)

    # ---- document walk ----

    def convert(self, vrm: ExtensionDocument) -> ExtensionDocument:
        return ExtensionDocument(
            blend_shape_master=self._convert_blendshape(vrm.blend_shape_master),
            humanoid=self._convert_humanoid(vrm.humanoid),
            first_person=self._convert_firstperson(vrm.first_person),
            material_properties=[
                self._convert_material(mat, f"materialProperties[{i}]")
                for i, mat in enumerate(vrm.material_properties)
            ],
            meta=copy.deepcopy(vrm.meta),
            secondary_animation={},
        )

    def _convert_blendshape(self, master: BlendShapeMaster) -> BlendShapeMaster:
        return BlendShapeMaster(
            blend_shape_groups=[
                self._convert_blendshape_group(group, f"blendShapeMaster.blendShapeGroups[{i}]")
                for i, group in enumerate(master.blend_shape_groups)
            ],
        )

    def _convert_blendshape_group(self, group: BlendShapeGroup, path: str) -> BlendShapeGroup:
        return BlendShapeGroup(
            name=group.name,
            preset_name=group.preset_name,
            binds=[
                self._convert_blendshape_bind(bind, f"{path}.binds[{i}]")
                for i, bind in enumerate(group.binds)
            ],
            material_values=copy.deepcopy(group.material_values),
        )

    def _convert_blendshape_bind(self, bind: BlendShapeBind, path: str) -> BlendShapeBind:
        return BlendShapeBind(
            mesh=self.map_mesh(bind.mesh, f"{path}.mesh"),
            index=bind.index,  # morph target index within the mesh
            weight=bind.weight,
        )

    def _convert_humanoid(self, humanoid: Humanoid) -> Humanoid:
        return Humanoid(
            human_bones=[
                self._convert_humanoid_bone(bone, f"humanoid.humanBones[{i}]")
                for i, bone in enumerate(humanoid.human_bones)
            ],
            arm_stretch=humanoid.arm_stretch,
            leg_stretch=humanoid.leg_stretch,
            upper_arm_twist=humanoid.upper_arm_twist,
            lower_arm_twist=humanoid.lower_arm_twist,
            upper_leg_twist=humanoid.upper_leg_twist,
            lower_leg_twist=humanoid.lower_leg_twist,
            feet_spacing=humanoid.feet_spacing,
            has_translation_dof=humanoid.has_translation_dof,
        )

    def _convert_humanoid_bone(self, bone: HumanoidBone, path: str) -> HumanoidBone:
        return HumanoidBone(
            bone=bone.bone,
            node=self.map_node(bone.node, f"{path}.node"),
            use_default_values=bone.use_default_values,
            min=copy.deepcopy(bone.min),
            max=copy.deepcopy(bone.max),
            center=copy.deepcopy(bone.center),
            axis_length=bone.axis_length,
        )

    def _convert_firstperson(self, fp: FirstPerson) -> FirstPerson:
        return FirstPerson(
            first_person_bone=self.map_node(fp.first_person_bone, "firstPerson.firstPersonBone"),
            first_person_bone_offset=copy.deepcopy(fp.first_person_bone_offset),
            mesh_annotations=[
                self._convert_firstperson_meshannotation(annot, f"firstPerson.meshAnnotations[{i}]")
                for i, annot in enumerate(fp.mesh_annotations)
            ],
            look_at_type_name=fp.look_at_type_name,
            look_at_horizontal_inner=copy.deepcopy(fp.look_at_horizontal_inner),
            look_at_horizontal_outer=copy.deepcopy(fp.look_at_horizontal_outer),
            look_at_vertical_down=copy.deepcopy(fp.look_at_vertical_down),
            look_at_vertical_up=copy.deepcopy(fp.look_at_vertical_up),
        )

    def _convert_firstperson_meshannotation(self, annot: MeshAnnotation, path: str) -> MeshAnnotation:
        return MeshAnnotation(
            mesh=self.map_mesh(annot.mesh, f"{path}.mesh"),
            first_person_flag=annot.first_person_flag,
        )

    def _convert_material(self, mat: MaterialProperties, path: str) -> MaterialProperties:
        # Schema says "object", but textureProperties values are glTF texture references.
        tex_props = {
            name: self.map_texture(ref, f"{path}.textureProperties.{name}")
            for name, ref in mat.texture_properties.items()
        }
        return MaterialProperties(
            name=mat.name,
            shader=mat.shader,
            render_queue=mat.render_queue,
            float_properties=copy.deepcopy(mat.float_properties),
            vector_properties=copy.deepcopy(mat.vector_properties),
            texture_properties=tex_props,
            keyword_map=copy.deepcopy(mat.keyword_map),
            tag_map=copy.deepcopy(mat.tag_map),
        )
