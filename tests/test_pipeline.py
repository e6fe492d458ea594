import asyncio

import pytest

from libvrm.errors import StructuralError
from libvrm.pipeline import (
    attach_extension,
    export_vrm,
    load_vrm,
    parse_vrm,
    resolve_dependencies,
    serialize_vrm,
)
from libvrm.reader import parse_glb
from libvrm.scene import DocumentExporter, DocumentLoader, SceneObject


class FakeExporter:
    def __init__(self, scene, materials=1):
        self.scene = scene
        self.materials = materials
        self.roots = []

    def export(self, root):
        self.roots.append(root)
        document = {
            "asset": {"version": "2.0"},
            "nodes": [{"name": n.name} for n in self.scene.nodes],
            "materials": [{}] * self.materials,
            "buffers": [{"byteLength": 0}],
            "extensionsUsed": ["KHR_materials_unlit"],
        }
        buffers = [b"\x00\x01\x02", b"\x03\x04\x05\x06\x07"]
        return document, buffers, self.scene.node_map, self.scene.skins


class FakeLoader:
    """Loader with coroutine getters that finish out of order."""

    def __init__(self, document):
        self.document = document
        self.scene = "root"
        self.calls = []

    async def _get(self, kind, index):
        self.calls.append((kind, index))
        await asyncio.sleep(0.001 * (5 - index % 5))
        return (kind, index)

    def get_node(self, index):
        return self._get("node", index)

    def get_mesh(self, index):
        return self._get("mesh", index)

    def get_texture(self, index):
        return self._get("texture", index)


class SyncLoader(FakeLoader):
    def get_node(self, index):
        return ("node", index)


def test_attach_extension_twice_no_duplicates():
    doc = {"extensionsUsed": ["KHR_materials_unlit", "VRM"]}
    attach_extension(doc, {"a": 1})
    attach_extension(doc, {"a": 2})
    assert doc["extensionsUsed"] == ["VRM", "KHR_materials_unlit"]
    assert doc["extensions"]["VRM"] == {"a": 2}


def test_attach_extension_on_bare_document():
    doc = {}
    attach_extension(doc, {})
    assert doc == {"extensions": {"VRM": {}}, "extensionsUsed": ["VRM"]}


def test_export_vrm(scene):
    exporter = FakeExporter(scene)
    result = export_vrm("avatar-root", scene.ext, exporter, exporter_version="test-1")

    assert exporter.roots == ["avatar-root"]
    glb = parse_glb(result.data)
    doc = glb.document
    assert doc["extensionsUsed"] == ["VRM", "KHR_materials_unlit"]
    assert doc["buffers"][0]["byteLength"] == 8
    assert glb.binary == bytes(range(8))

    vrm = doc["extensions"]["VRM"]
    assert vrm["exporterVersion"] == "test-1"
    assert vrm["blendShapeMaster"]["blendShapeGroups"][0]["binds"][0] == {"mesh": 2, "index": 5, "weight": 1.0}
    assert [b["node"] for b in vrm["humanoid"]["humanBones"]] == [1, 2, 3]
    assert result.warnings == []


def test_serialize_vrm_returns_bytes(scene):
    data = serialize_vrm("root", scene.ext, FakeExporter(scene))
    assert data[:4] == b"glTF"
    assert len(data) % 4 == 0


def test_export_material_count_mismatch(scene):
    with pytest.raises(StructuralError):
        export_vrm("root", scene.ext, FakeExporter(scene, materials=2))


def test_export_does_not_touch_extension(scene):
    before = scene.ext.humanoid.human_bones[0].node
    export_vrm("root", scene.ext, FakeExporter(scene))
    assert scene.ext.humanoid.human_bones[0].node is before


def test_resolve_dependencies_waits_for_all(vrm_document):
    loader = FakeLoader(vrm_document)
    ctx = asyncio.run(resolve_dependencies(vrm_document, loader))

    assert ctx.nodes == [("node", i) for i in range(5)]
    assert ctx.meshes == [("mesh", i) for i in range(3)]
    assert ctx.textures == [("texture", 0), ("texture", 1)]
    assert len(loader.calls) == 10


def test_resolve_dependencies_accepts_sync_getters(vrm_document):
    ctx = asyncio.run(resolve_dependencies(vrm_document, SyncLoader(vrm_document)))
    assert ctx.nodes[4] == ("node", 4)


def test_parse_vrm(vrm_document):
    imp = asyncio.run(parse_vrm(vrm_document, FakeLoader(vrm_document)))

    assert imp.scene == "root"
    assert imp.warnings == []
    vrm = imp.extension
    assert vrm.humanoid.human_bones[0].node == ("node", 1)
    assert vrm.blend_shape_master.blend_shape_groups[1].binds[0].mesh == ("mesh", 1)
    assert vrm.material_properties[0].texture_properties == {"_MainTex": ("texture", 0), "_ShadeTexture": ("texture", 0)}


def test_load_vrm_without_extension(vrm_document):
    del vrm_document["extensions"]
    with pytest.raises(StructuralError):
        load_vrm(vrm_document, FakeLoader(vrm_document))


def test_load_vrm_dangling_mesh(vrm_document):
    vrm_document["meshes"].pop()
    imp = load_vrm(vrm_document, FakeLoader(vrm_document))
    assert imp.extension.first_person.mesh_annotations[1].mesh == 0
    assert [w.kind for w in imp.warnings] == ["mesh"]


def test_document_loader_memoizes(vrm_document):
    loader = DocumentLoader(vrm_document)
    a = asyncio.run(loader.get_node(2))
    b = asyncio.run(loader.get_node(2))
    assert a is b
    assert isinstance(a, SceneObject)
    assert a.name == "J_Bip_C_Spine"
    assert loader.scene.data == {"nodes": [0]}
    with pytest.raises(IndexError):
        loader.mesh(3)


def test_repack_through_document_collaborators(vrm_bytes, vrm_document):
    glb = parse_glb(vrm_bytes)
    loader = DocumentLoader.from_glb(glb)
    imp = load_vrm(glb.document, loader)
    assert imp.extension.humanoid.human_bones[0].node is loader.node(1)

    result = export_vrm(imp.scene, imp.extension, DocumentExporter(loader))
    repacked = parse_glb(result.data)

    assert repacked.document["buffers"][0]["byteLength"] == 10
    assert repacked.binary[:10] == glb.binary[:10]
    assert repacked.document["nodes"] == vrm_document["nodes"]

    old = vrm_document["extensions"]["VRM"]
    new = repacked.document["extensions"]["VRM"]
    assert new["humanoid"] == old["humanoid"]
    assert new["firstPerson"] == old["firstPerson"]
    assert new["blendShapeMaster"] == old["blendShapeMaster"]
    assert new["meta"] == old["meta"]
    assert new["secondaryAnimation"] == {}
    assert new["materialProperties"][1]["textureProperties"] == {"_MainTex": 0}
    assert repacked.document["extensionsUsed"] == ["VRM"]


@pytest.mark.parametrize("doc", [
    {"extensionsUsed": None},
    {"extensions": None},
    {"extensions": None, "extensionsUsed": None},
])
def test_attach_extension_over_null_fields(doc):
    attach_extension(doc, {"a": 1})
    assert doc["extensions"] == {"VRM": {"a": 1}}
    assert doc["extensionsUsed"] == ["VRM"]


@pytest.mark.parametrize("scene_index", [3, -1, "0", None])
def test_document_loader_rejects_bad_scene_index(vrm_document, scene_index):
    vrm_document["scene"] = scene_index
    with pytest.raises(StructuralError):
        DocumentLoader(vrm_document)


def test_repack_document_with_null_extensions(vrm_document):
    loader = DocumentLoader(vrm_document, b"\x01\x02")
    imp = load_vrm(vrm_document, loader)

    loader.document = dict(vrm_document, extensions=None)
    document, buffers, _, _ = DocumentExporter(loader).export(imp.scene)
    assert document["extensions"] is None
    assert buffers == [b"\x01\x02"]

    result = export_vrm(imp.scene, imp.extension, DocumentExporter(loader))
    repacked = parse_glb(result.data)
    assert list(repacked.document["extensions"]) == ["VRM"]


def test_document_exporter_skips_non_object_buffer(vrm_document):
    vrm_document["buffers"] = ["not-an-object"]
    loader = DocumentLoader(vrm_document, b"\x01\x02\x03")
    _, buffers, _, _ = DocumentExporter(loader).export(loader.scene)
    assert buffers == [b"\x01\x02\x03"]
