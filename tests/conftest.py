import copy
from types import SimpleNamespace

import pytest

from libvrm.model import (
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
from libvrm.writer import pack_glb

BIN = bytes(range(10))

WIRE_VRM = {
    "exporterVersion": "UniVRM-0.53.0",
    "meta": {
        "title": "Alicia",
        "version": "1.0",
        "author": "DWANGO",
        "allowedUserName": "Everyone",
        "texture": 1,
    },
    "humanoid": {
        "humanBones": [
            {"bone": "hips", "node": 1, "useDefaultValues": True},
            {"bone": "spine", "node": 2, "useDefaultValues": True},
            {
                "bone": "head",
                "node": 3,
                "useDefaultValues": False,
                "min": {"x": 0, "y": 0, "z": 0},
                "max": {"x": 0, "y": 0, "z": 0},
                "center": {"x": 0, "y": 0, "z": 0},
                "axisLength": 0,
            },
        ],
        "armStretch": 0.05,
        "legStretch": 0.05,
        "upperArmTwist": 0.5,
        "lowerArmTwist": 0.5,
        "upperLegTwist": 0.5,
        "lowerLegTwist": 0.5,
        "feetSpacing": 0,
        "hasTranslationDoF": False,
    },
    "firstPerson": {
        "firstPersonBone": 3,
        "firstPersonBoneOffset": {"x": 0, "y": 0.06, "z": 0},
        "meshAnnotations": [
            {"mesh": 0, "firstPersonFlag": "Auto"},
            {"mesh": 2, "firstPersonFlag": "ThirdPersonOnly"},
        ],
        "lookAtTypeName": "Bone",
        "lookAtHorizontalInner": {"curve": [0, 0, 0, 1, 1, 1, 1, 0], "xRange": 90, "yRange": 10},
        "lookAtHorizontalOuter": {"curve": [0, 0, 0, 1, 1, 1, 1, 0], "xRange": 90, "yRange": 10},
        "lookAtVerticalDown": {"curve": [0, 0, 0, 1, 1, 1, 1, 0], "xRange": 90, "yRange": 10},
        "lookAtVerticalUp": {"curve": [0, 0, 0, 1, 1, 1, 1, 0], "xRange": 90, "yRange": 10},
    },
    "blendShapeMaster": {
        "blendShapeGroups": [
            {"name": "Neutral", "presetName": "neutral", "binds": [], "materialValues": []},
            {
                "name": "Smile",
                "presetName": "joy",
                "binds": [{"mesh": 1, "index": 5, "weight": 100}],
                "materialValues": [],
            },
            {"name": "Wink", "presetName": "unknown", "binds": [{"mesh": 1, "index": 7, "weight": 100}]},
        ],
    },
    "materialProperties": [
        {
            "name": "Body",
            "shader": "VRM/MToon",
            "renderQueue": 2000,
            "floatProperties": {"_Cutoff": 0.5, "_BumpScale": 1},
            "vectorProperties": {"_Color": [1, 1, 1, 1]},
            "textureProperties": {"_MainTex": 0, "_ShadeTexture": 0},
            "keywordMap": {"_NORMALMAP": True},
            "tagMap": {"RenderType": "Opaque"},
        },
        {
            "name": "Face",
            "shader": "VRM_USE_GLTFSHADER",
            "renderQueue": 2000,
            "floatProperties": {},
            "vectorProperties": {},
            "textureProperties": {"_MainTex": 1},
            "keywordMap": {},
            "tagMap": {},
        },
    ],
    "secondaryAnimation": {"boneGroups": [{"comment": "hair", "bones": [3]}], "colliderGroups": []},
}

DOCUMENT = {
    "asset": {"version": "2.0", "generator": "UniGLTF-1.25"},
    "scene": 0,
    "scenes": [{"nodes": [0]}],
    "nodes": [
        {"name": "Root", "children": [1, 4]},
        {"name": "J_Bip_C_Hips", "children": [2]},
        {"name": "J_Bip_C_Spine", "children": [3]},
        {"name": "J_Bip_C_Head"},
        {"name": "Body", "mesh": 0},
    ],
    "meshes": [{"name": "Body"}, {"name": "Face"}, {"name": "Hair"}],
    "materials": [{"name": "Body"}, {"name": "Face"}],
    "textures": [{"source": 0}, {"source": 1}],
    "buffers": [{"byteLength": len(BIN)}],
    "extensionsUsed": ["VRM"],
    "extensions": {"VRM": WIRE_VRM},
}


class Handle:
    """Stand-in for a live scene object; compared by identity."""

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"Handle({self.name!r})"


@pytest.fixture
def wire_vrm():
    return copy.deepcopy(WIRE_VRM)


@pytest.fixture
def vrm_document():
    return copy.deepcopy(DOCUMENT)


@pytest.fixture
def vrm_bytes():
    return pack_glb(copy.deepcopy(DOCUMENT), [BIN])


@pytest.fixture
def vrm_file(tmp_path, vrm_bytes):
    p = tmp_path / "alicia.vrm"
    p.write_bytes(vrm_bytes)
    return str(p)


@pytest.fixture
def scene():
    """Scene objects plus a canonical extension that references them."""

    nodes = [Handle(n) for n in ("root", "hips", "spine", "head")]
    meshes = [Handle(n) for n in ("body", "face", "hair")]
    textures = [Handle("body_tex"), Handle("face_tex")]

    ext = ExtensionDocument(
        blend_shape_master=BlendShapeMaster(blend_shape_groups=[
            BlendShapeGroup(
                name="Smile",
                preset_name="joy",
                binds=[BlendShapeBind(mesh=meshes[2], index=5, weight=1.0)],
                material_values=[],
            ),
            BlendShapeGroup(
                name="Blink",
                preset_name="blink",
                binds=[
                    BlendShapeBind(mesh=meshes[1], index=0, weight=100),
                    BlendShapeBind(mesh=meshes[0], index=3, weight=50.5),
                ],
            ),
        ]),
        humanoid=Humanoid(
            human_bones=[
                HumanoidBone(bone="hips", node=nodes[1], use_default_values=True),
                HumanoidBone(bone="spine", node=nodes[2], use_default_values=True),
                HumanoidBone(bone="head", node=nodes[3], use_default_values=False,
                             min={"x": 0, "y": 0, "z": 0}, axis_length=0.1),
            ],
            arm_stretch=0.05,
            leg_stretch=0.05,
            upper_arm_twist=0.5,
            lower_arm_twist=0.5,
            upper_leg_twist=0.5,
            lower_leg_twist=0.5,
            feet_spacing=0.0,
            has_translation_dof=False,
        ),
        first_person=FirstPerson(
            first_person_bone=nodes[3],
            first_person_bone_offset={"x": 0, "y": 0.06, "z": 0},
            mesh_annotations=[
                MeshAnnotation(mesh=meshes[0], first_person_flag="Auto"),
                MeshAnnotation(mesh=meshes[1], first_person_flag="FirstPersonOnly"),
            ],
            look_at_type_name="BlendShape",
            look_at_horizontal_inner={"curve": [0, 0, 0, 1, 1, 1, 1, 0], "xRange": 90, "yRange": 10},
        ),
        material_properties=[
            MaterialProperties(
                name="Body",
                shader="VRM/MToon",
                render_queue=2000,
                float_properties={"_Cutoff": 0.5},
                vector_properties={"_Color": [1, 1, 1, 1]},
                texture_properties={"_MainTex": textures[0], "_ShadeTexture": textures[1]},
                keyword_map={},
                tag_map={"RenderType": "Opaque"},
            ),
        ],
        meta={"title": "Test", "author": "me"},
    )

    return SimpleNamespace(
        nodes=nodes,
        meshes=meshes,
        textures=textures,
        ext=ext,
        node_map={n: i for i, n in enumerate(nodes)},
        skins=list(meshes),
    )
