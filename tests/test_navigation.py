from __future__ import annotations

import json

from sitepipe.files import VirtualFile
from sitepipe.navigation import DEFAULT_RANK, Navigation, NavTree, menu_rank


def fileset(entries: dict[str, dict]) -> dict[str, VirtualFile]:
    return {path: VirtualFile(b"", dict(meta)) for path, meta in entries.items()}


def names(node: dict) -> list[str]:
    return [child["name"] for child in node["children"]]


def test_menu_rank():
    assert menu_rank(None) == DEFAULT_RANK
    assert menu_rank({}) == DEFAULT_RANK
    assert menu_rank({"menu_order": 3}) == 3
    assert menu_rank({"menu_order": "4"}) == 4
    assert menu_rank({"menu_order": "soon"}) == DEFAULT_RANK
    assert menu_rank({"menu_order": True}) == DEFAULT_RANK


def test_ranked_before_unranked_then_by_name():
    tree = NavTree.from_files(
        fileset(
            {
                "zeta.html": {"menu_order": 1},
                "alpha.html": {},
                "beta.html": {"menu_order": 1},
                "gamma.html": {},
            }
        )
    )
    data = tree.to_json()
    assert names(data) == ["beta", "zeta", "alpha", "gamma"]
    assert [child["order"] for child in data["children"]] == [1, 1, DEFAULT_RANK, DEFAULT_RANK]


def test_directory_rank_comes_from_its_index_file():
    tree = NavTree.from_files(
        fileset(
            {
                "a-guide/index.html": {"menu_order": 20, "title": "Guide"},
                "a-guide/step.html": {},
                "b-install/index.html": {"menu_order": 10},
                "c-misc/page.html": {"menu_order": 1},
            }
        )
    )
    data = tree.to_json()
    assert names(data) == ["b-install", "a-guide", "c-misc"]
    assert [child["type"] for child in data["children"]] == ["dir", "dir", "dir"]
    assert data["children"][2]["order"] == DEFAULT_RANK


def test_export_is_plain_json():
    tree = NavTree.from_files(
        fileset(
            {
                "index.html": {"title": "Home"},
                "usage/index.html": {"nav_title": "Usage", "search_blurb": "How to"},
                "usage/cli.html": {"title": "CLI", "menu_order": 1},
            }
        )
    )
    data = tree.to_json()
    json.dumps(data)
    usage = next(child for child in data["children"] if child["name"] == "usage")
    assert usage["path"] == "usage"
    cli = next(child for child in usage["children"] if child["name"] == "cli")
    assert cli == {
        "name": "cli",
        "path": "usage/cli",
        "type": "file",
        "order": 1,
        "file": {"post_title": "CLI", "search_blurb": None},
        "children": [],
    }
    index = next(child for child in usage["children"] if child["name"] == "index")
    assert index["path"] == "usage"
    assert index["file"] == {"post_title": "Usage", "search_blurb": "How to"}


def test_non_matching_files_are_ignored():
    tree = NavTree.from_files(fileset({"a.html": {}, "img/logo.png": {}}))
    assert names(tree.to_json()) == ["a"]


def test_breadcrumbs():
    tree = NavTree.from_files(fileset({"a/b/c.html": {}}))
    assert tree.breadcrumbs("a/b/c.html") == [
        {"name": "a", "path": "a"},
        {"name": "b", "path": "a/b"},
        {"name": "c", "path": "a/b/c"},
    ]


def test_navigation_stage(context):
    files = fileset(
        {
            "foo.html": {"title": "Foo", "menu_order": 2},
            "guide/index.html": {"title": "Guide"},
            "guide/one.html": {"title": "One"},
        }
    )
    out = Navigation().run(files, context)
    header = context.metadata["navs"]["header"]
    foo = next(child for child in header["children"] if child["name"] == "foo")
    assert foo["path"] == "foo"
    assert foo["order"] == 2
    exported = json.loads(out["navigation.json"].text)
    assert exported == header
    assert out["guide/one.html"].metadata["nav_path"][-1] == {"name": "one", "path": "guide/one"}
    assert [child["name"] for child in out["guide/index.html"].metadata["nav_children"]] == ["index", "one"]


def test_navigation_stage_without_export(context):
    out = Navigation(list_name="side", export=None).run(fileset({"a.html": {}}), context)
    assert "navigation.json" not in out
    assert "side" in context.metadata["navs"]
