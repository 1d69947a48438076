"""cli entrypoint for brainmap."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .core.models import MindMap
from .core.session import RECENT_FILES_FILENAME, RecentFiles, get_config_dir
from .errors import BrainmapError
from .formats import classify, read_map, supported_formats, write_map

console = Console()


def build_tree(mindmap: MindMap, max_depth: Optional[int] = None) -> Tree:
    """rich tree of the map, cut off below max_depth."""

    def label(node_id: str) -> Text:
        node = mindmap.nodes[node_id]
        text = Text(node.content.replace("\n", " / ") or "(empty)")
        if node.icons:
            text.append(f"  [{', '.join(node.icons)}]", style="dim")
        if node_id == mindmap.selected_node_id:
            text.stylize("bold cyan")
        return text

    def add(branch: Tree, node_id: str, depth: int) -> None:
        children = mindmap.nodes[node_id].children
        if max_depth is not None and depth >= max_depth:
            if children:
                branch.add(Text(f"... {len(children)} more", style="dim"))
            return
        for child_id in children:
            add(branch.add(label(child_id)), child_id, depth + 1)

    tree = Tree(label(mindmap.root_id))
    add(tree, mindmap.root_id, 0)
    return tree


def cmd_tree(args) -> None:
    mindmap = read_map(args.file)
    console.print(build_tree(mindmap, args.depth))
    console.print(Text(f"{len(mindmap)} nodes, {classify(args.file).label}", style="dim"))


def cmd_convert(args) -> None:
    mindmap = read_map(args.source)
    write_map(args.target, mindmap)
    console.print(
        f"wrote {args.target} ({classify(args.source).label} -> {classify(args.target).label}, "
        f"{len(mindmap)} nodes)"
    )


def cmd_formats(args) -> None:
    table = Table("format", "extension", "default")
    for f in supported_formats():
        table.add_row(f["name"], f".{f['extension']}", "yes" if f["default"] else "")
    console.print(table)


def cmd_recent(args) -> None:
    config_dir = Path(args.config_dir) if args.config_dir else get_config_dir()
    recent = RecentFiles(config_dir / RECENT_FILES_FILENAME)
    recent.load()
    if args.clear:
        recent.clear()
        console.print("recent files cleared")
        return
    entries = recent.entries
    if not entries:
        console.print(Text("no recent files", style="dim"))
    for i, path in enumerate(entries):
        console.print(f"{i}  {path}")


def cmd_serve(args) -> None:
    from .api.server import serve

    serve(host=args.host, port=args.port, config_dir=args.config_dir, reload=args.reload)


def main():
    parser = argparse.ArgumentParser(
        description="brainmap - mind map documents across formats"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="run the api server")
    serve.add_argument("--host", default="127.0.0.1", help="host to bind")
    serve.add_argument("--port", "-p", type=int, default=8000, help="port to bind")
    serve.add_argument("--config-dir", help="directory holding recent_files.json (default: ~/.brainmap)")
    serve.add_argument("--reload", action="store_true", help="enable auto-reload")
    serve.set_defaults(func=cmd_serve)

    tree = subparsers.add_parser("tree", help="print a mind map file as a tree")
    tree.add_argument("file", help="mind map file; the extension picks the format")
    tree.add_argument("--depth", "-d", type=int, help="levels below the root to show")
    tree.set_defaults(func=cmd_tree)

    convert = subparsers.add_parser("convert", help="convert between formats")
    convert.add_argument("source", help="file to read")
    convert.add_argument("target", help="file to write; the extension picks the format")
    convert.set_defaults(func=cmd_convert)

    formats = subparsers.add_parser("formats", help="list supported formats")
    formats.set_defaults(func=cmd_formats)

    recent = subparsers.add_parser("recent", help="show the recent files list")
    recent.add_argument("--config-dir", help="directory holding recent_files.json (default: ~/.brainmap)")
    recent.add_argument("--clear", action="store_true", help="empty the list")
    recent.set_defaults(func=cmd_recent)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        args.func(args)
    except BrainmapError as e:
        console.print(Text.assemble(("error: ", "red"), str(e)))
        sys.exit(1)


if __name__ == "__main__":
    main()
