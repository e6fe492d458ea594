from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# -----------------------------
# High-level, stable DTOs used by summarize_vrm
# -----------------------------

@dataclass
class VrmBlendShapeInfo:
    name: str
    preset_name: str
    binds: int

@dataclass
class VrmSummary:
    path: str
    file_size: int
    version: int
    json_length: int
    bin_length: int
    extensions_used: List[str]
    title: Optional[str]
    author: Optional[str]
    model_version: Optional[str]
    exporter_version: Optional[str]
    node_count: int
    mesh_count: int
    material_count: int
    texture_count: int
    human_bones: Dict[str, int]
    blend_shapes: List[VrmBlendShapeInfo]
    # indices referenced by the VRM block that fall outside their array
    dangling: Dict[str, List[int]]
    # bone names mapped more than once; import rejects such files
    duplicate_bones: List[str] = field(default_factory=list)


# -----------------------------
# Low-level, chunk-preserving container model
#
# Goal:
#   - Read any GLB/VRM file.
#   - Preserve every chunk verbatim (including unknown chunk types).
#   - Keep the parsed JSON next to the raw chunk so callers never re-decode.
# -----------------------------


@dataclass
class GlbHeader:
    """Parsed 12-byte header."""

    magic: int
    version: int
    length: int  # total length field from file


@dataclass
class GlbChunk:
    """A single chunk, preserved verbatim."""

    type_int: int
    type_tag: str  # 4-char ASCII tag, NUL stripped ('JSON', 'BIN')
    length: int    # length field from file (padded payload size)
    body: bytes
    offset: int    # file offset where this chunk starts (at length)

    @property
    def raw(self) -> bytes:
        # Stored layout:
        #   uint32 length
        #   uint32 type
        #   <body bytes> (length)
        import struct
        return struct.pack('<II', self.length, self.type_int) + self.body


@dataclass
class GlbFile:
    header: GlbHeader
    chunks: List[GlbChunk]
    document: Dict[str, Any]

    @property
    def binary(self) -> bytes:
        # First BIN chunk; GLB allows at most one and it may be absent.
        for ch in self.chunks:
            if ch.type_tag == "BIN":
                return ch.body
        return b""


# -----------------------------
# Canonical VRM extension model
#
# Reference fields (mesh, node, first_person_bone, texture_properties values)
# hold whatever the current side uses: live scene objects after import,
# integer indices before serialization. Everything typed Dict/Any without a
# reference meaning is carried through untouched.
# -----------------------------


@dataclass
class BlendShapeBind:
    mesh: Any
    index: int
    weight: float


@dataclass
class BlendShapeGroup:
    name: str
    preset_name: str
    binds: List[BlendShapeBind] = field(default_factory=list)
    material_values: Optional[List[Any]] = None


@dataclass
class BlendShapeMaster:
    blend_shape_groups: List[BlendShapeGroup] = field(default_factory=list)


@dataclass
class HumanoidBone:
    bone: str
    node: Any
    use_default_values: Optional[bool] = None
    min: Optional[Dict[str, float]] = None
    max: Optional[Dict[str, float]] = None
    center: Optional[Dict[str, float]] = None
    axis_length: Optional[float] = None


@dataclass
class Humanoid:
    human_bones: List[HumanoidBone] = field(default_factory=list)
    arm_stretch: Optional[float] = None
    leg_stretch: Optional[float] = None
    upper_arm_twist: Optional[float] = None
    lower_arm_twist: Optional[float] = None
    upper_leg_twist: Optional[float] = None
    lower_leg_twist: Optional[float] = None
    feet_spacing: Optional[float] = None
    has_translation_dof: Optional[bool] = None


@dataclass
class MeshAnnotation:
    mesh: Any
    first_person_flag: Optional[str] = None


@dataclass
class FirstPerson:
    first_person_bone: Any
    first_person_bone_offset: Optional[Dict[str, float]] = None
    mesh_annotations: List[MeshAnnotation] = field(default_factory=list)
    look_at_type_name: Optional[str] = None
    # Degree-map objects in the schema ({curve, xRange, yRange}); opaque here.
    look_at_horizontal_inner: Any = None
    look_at_horizontal_outer: Any = None
    look_at_vertical_down: Any = None
    look_at_vertical_up: Any = None


@dataclass
class MaterialProperties:
    name: Optional[str] = None
    shader: Optional[str] = None
    render_queue: Optional[int] = None
    float_properties: Optional[Dict[str, Any]] = None
    vector_properties: Optional[Dict[str, Any]] = None
    texture_properties: Dict[str, Any] = field(default_factory=dict)
    keyword_map: Optional[Dict[str, Any]] = None
    tag_map: Optional[Dict[str, Any]] = None


@dataclass
class ExtensionDocument:
    blend_shape_master: BlendShapeMaster
    humanoid: Humanoid
    first_person: FirstPerson
    material_properties: List[MaterialProperties] = field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None
    # Spring bone physics is not carried across a conversion yet.
    secondary_animation: Dict[str, Any] = field(default_factory=dict)
