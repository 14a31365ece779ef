"""Navigation tree built from the flat paths of a file set.

Nodes live in a flat list and refer to each other by index, so the tree is
built once from path segments and reduced to plain dicts for templates and
the JSON export.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from .files import FileSet, VirtualFile, match_path
from .pipeline import BuildContext, Stage

DEFAULT_RANK = 999
INDEX_NAME = "index.html"


@dataclass
class NavNode:
    name: str
    path: str
    type: str
    parent: int | None = None
    children: list[int] = field(default_factory=list)
    file: dict | None = None


def menu_rank(meta: dict | None) -> int | float:
    if not meta:
        return DEFAULT_RANK
    value = meta.get("menu_order")
    if isinstance(value, bool) or value is None:
        return DEFAULT_RANK
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value) if "." in str(value) else int(str(value).strip())
    except ValueError:
        return DEFAULT_RANK


def file_summary(meta: dict) -> dict:
    return {
        "post_title": meta.get("nav_title") or meta.get("post_title") or meta.get("title"),
        "search_blurb": meta.get("search_blurb"),
    }


class NavTree:
    def __init__(self) -> None:
        self.nodes: list[NavNode] = [NavNode(name="", path="", type="dir")]
        self._dirs: dict[str, int] = {"": 0}
        self._files: dict[str, int] = {}

    @classmethod
    def from_files(cls, files: FileSet, pattern: str = "**/*.html") -> "NavTree":
        tree = cls()
        for path in sorted(files):
            if match_path(path, pattern):
                tree.add_file(path, files[path].metadata)
        tree.sort()
        return tree

    def _add(self, node: NavNode) -> int:
        self.nodes.append(node)
        index = len(self.nodes) - 1
        if node.parent is not None:
            self.nodes[node.parent].children.append(index)
        return index

    def _dir(self, path: str) -> int:
        if path in self._dirs:
            return self._dirs[path]
        pure = PurePosixPath(path)
        parent = self._dir(pure.parent.as_posix() if pure.parent.as_posix() != "." else "")
        index = self._add(NavNode(name=pure.name, path=path, type="dir", parent=parent))
        self._dirs[path] = index
        return index

    def add_file(self, path: str, meta: dict) -> int:
        pure = PurePosixPath(path)
        parent_path = pure.parent.as_posix()
        parent = self._dir("" if parent_path == "." else parent_path)
        index = self._add(NavNode(name=pure.name, path=path, type="file", parent=parent, file=meta))
        self._files[path] = index
        return index

    def index_child(self, index: int) -> NavNode | None:
        for child in self.nodes[index].children:
            node = self.nodes[child]
            if node.type == "file" and node.name == INDEX_NAME:
                return node
        return None

    def rank(self, index: int) -> int | float:
        node = self.nodes[index]
        if node.type == "dir":
            index_node = self.index_child(index)
            return menu_rank(index_node.file if index_node else None)
        return menu_rank(node.file)

    def sort(self, index: int = 0) -> None:
        node = self.nodes[index]
        node.children.sort(key=lambda child: (self.rank(child), self.nodes[child].name))
        for child in node.children:
            if self.nodes[child].type == "dir":
                self.sort(child)

    def url_path(self, index: int) -> str:
        node = self.nodes[index]
        if node.type == "dir":
            return node.path
        pure = PurePosixPath(node.path)
        if pure.name == INDEX_NAME:
            parent = pure.parent.as_posix()
            return "" if parent == "." else parent
        return pure.with_suffix("").as_posix()

    def display_name(self, index: int) -> str:
        node = self.nodes[index]
        if node.type == "file":
            return PurePosixPath(node.name).stem
        return node.name

    def to_json(self, index: int = 0) -> dict:
        node = self.nodes[index]
        data = {
            "name": self.display_name(index),
            "path": self.url_path(index),
            "type": node.type,
            "order": self.rank(index),
        }
        if node.file is not None:
            data["file"] = file_summary(node.file)
        data["children"] = [self.to_json(child) for child in node.children]
        return data

    def files(self) -> dict[str, int]:
        return dict(self._files)

    def breadcrumbs(self, path: str) -> list[dict]:
        index = self._files.get(path)
        trail = []
        while index is not None:
            if index != 0:
                trail.append({"name": self.display_name(index), "path": self.url_path(index)})
            index = self.nodes[index].parent
        return list(reversed(trail))

    def siblings(self, path: str) -> list[dict]:
        index = self._files.get(path)
        if index is None:
            return []
        parent = self.nodes[index].parent
        return self.to_json(parent)["children"] if parent is not None else []


class Navigation(Stage):
    name = "navigation"
    provides = ("navs",)

    def __init__(self, list_name: str = "header", pattern: str = "**/*.html", export: str | None = "navigation.json"):
        self.list_name = list_name
        self.pattern = pattern
        self.export = export

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        tree = NavTree.from_files(files, self.pattern)
        exported = tree.to_json()
        for path, index in tree.files().items():
            meta = files[path].metadata
            meta["nav_path"] = tree.breadcrumbs(path)
            if tree.nodes[index].name == INDEX_NAME:
                meta["nav_children"] = tree.siblings(path)
        navs = dict(context.metadata.get("navs") or {})
        navs[self.list_name] = exported
        context.set("navs", navs)
        if self.export:
            files[self.export] = VirtualFile(json.dumps(exported, indent=2, ensure_ascii=True).encode("utf-8"))
        return files
