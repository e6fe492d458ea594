from __future__ import annotations
import argparse
import logging
import os
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from libvrm.errors import VrmError
from libvrm.extension import extension_from_json, extension_to_json
from libvrm.mapper import ReferenceMapper, Resolvers
from libvrm.pipeline import export_vrm, load_vrm
from libvrm.reader import parse_glb, read_glb
from libvrm.scene import DocumentExporter, DocumentLoader
from libvrm.schema import EXTENSION_NAME
from libvrm.summary import summarize_vrm

console = Console()

# Known-lossy parts of a repack; verify-roundtrip does not compare them.
LOSSY_KEYS = ("secondaryAnimation", "exporterVersion")

def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

def _repack(glb):
    loader = DocumentLoader.from_glb(glb)
    imp = load_vrm(glb.document, loader)
    return export_vrm(imp.scene, imp.extension, DocumentExporter(loader))

def cmd_summary(args: argparse.Namespace) -> int:
    s = summarize_vrm(args.vrm)
    console.print(f"[bold]File:[/bold] {s.path}")
    console.print(f"[bold]Size:[/bold] {s.file_size} bytes   [bold]GLB version:[/bold] {s.version}")
    console.print(f"[bold]Chunks:[/bold] JSON {s.json_length} bytes, BIN {s.bin_length} bytes")
    console.print(f"[bold]Extensions used:[/bold] {', '.join(s.extensions_used) or '-'}")
    console.print(f"[bold]Title:[/bold] {s.title or '-'}   [bold]Author:[/bold] {s.author or '-'}   "
                  f"[bold]Version:[/bold] {s.model_version or '-'}")
    console.print(f"[bold]Exporter:[/bold] {s.exporter_version or '-'}")
    console.print(f"[bold]Nodes:[/bold] {s.node_count}   [bold]Meshes:[/bold] {s.mesh_count}   "
                  f"[bold]Materials:[/bold] {s.material_count}   [bold]Textures:[/bold] {s.texture_count}")

    bt = Table(title=f"Humanoid bones ({len(s.human_bones)})")
    bt.add_column("Bone", overflow="fold")
    bt.add_column("Node", justify="right")
    if s.human_bones:
        for bone, node in s.human_bones.items():
            bt.add_row(str(bone), str(node))
    else:
        bt.add_row("(none found)", "-")
    console.print(bt)

    t = Table(title="Blendshape groups")
    t.add_column("Name", overflow="fold")
    t.add_column("Preset")
    t.add_column("Binds", justify="right")
    if s.blend_shapes:
        for g in s.blend_shapes:
            t.add_row(str(g.name), str(g.preset_name), str(g.binds))
    else:
        t.add_row("(none found)", "-", "-")
    console.print(t)

    for kind, indices in s.dangling.items():
        console.print(f"[yellow]Dangling {kind} references:[/yellow] {indices}")
    if s.duplicate_bones:
        console.print(f"[yellow]Bones mapped more than once:[/yellow] {', '.join(s.duplicate_bones)}")
    return 0

def cmd_extension(args: argparse.Namespace) -> int:
    glb = read_glb(args.vrm)
    loader = DocumentLoader.from_glb(glb)
    imp = load_vrm(glb.document, loader)

    # Scene objects back to their document index, for display only.
    # Unresolved references are already plain 0s.
    def index_of(o):
        return getattr(o, "index", o)
    to_index = ReferenceMapper(Resolvers(node=index_of, mesh=index_of, texture=index_of))
    console.print_json(data=extension_to_json(to_index.convert(imp.extension)))
    for w in imp.warnings:
        console.print(f"[yellow]{w}[/yellow]")
    return 0

def cmd_repack(args: argparse.Namespace) -> int:
    out = args.out or os.path.splitext(args.vrm)[0] + ".repack.vrm"
    result = _repack(read_glb(args.vrm))
    with open(out, "wb") as f:
        f.write(result.data)
    console.print(f"[green]Wrote:[/green] {out} ({len(result.data)} bytes)")
    if result.warnings:
        console.print(f"[yellow]{len(result.warnings)} unresolved reference(s) written as 0[/yellow]")
    return 0

def _comparable(ext: dict) -> dict:
    out = extension_to_json(extension_from_json(ext))
    for key in LOSSY_KEYS:
        out.pop(key, None)
    # Texture references are exported as a placeholder index.
    for mat in out.get("materialProperties", []):
        mat["textureProperties"] = sorted(mat.get("textureProperties", {}))
    return out

def cmd_verify_roundtrip(args: argparse.Namespace) -> int:
    original = read_glb(args.vrm)
    result = _repack(original)
    repacked = parse_glb(result.data)

    a = _comparable(original.document["extensions"][EXTENSION_NAME])
    b = _comparable(repacked.document["extensions"][EXTENSION_NAME])

    t = Table(title="VRM extension round-trip")
    t.add_column("Section")
    t.add_column("Result", justify="center")
    same = True
    for key in sorted(set(a) | set(b)):
        ok = a.get(key) == b.get(key)
        same = same and ok
        t.add_row(key, "[green]same[/green]" if ok else "[red]DIFF[/red]")
    console.print(t)

    console.print(f"IN : {args.vrm}\n     {os.path.getsize(args.vrm)} bytes")
    console.print(f"OUT: (memory)\n     {len(result.data)} bytes, {len(result.warnings)} unresolved reference(s)")
    console.print("IDENTICAL" if same else "DIFF")
    return 0 if same else 1

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vrmcli")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("summary", help="Print info about a VRM file")
    s.add_argument("vrm")
    s.set_defaults(fn=cmd_summary)

    e = sub.add_parser("extension", help="Dump the VRM extension (references as indices)")
    e.add_argument("vrm")
    e.set_defaults(fn=cmd_extension)

    r = sub.add_parser("repack", help="Import then re-export a VRM file")
    r.add_argument("vrm")
    r.add_argument("--out", help="Output path (default: <input>.repack.vrm)")
    r.set_defaults(fn=cmd_repack)

    v = sub.add_parser("verify-roundtrip", help="Repack in memory and compare the VRM extension")
    v.add_argument("vrm")
    v.set_defaults(fn=cmd_verify_roundtrip)

    return p

def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    try:
        return int(args.fn(args))
    except VrmError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

if __name__ == "__main__":
    raise SystemExit(main())
