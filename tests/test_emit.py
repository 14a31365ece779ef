from __future__ import annotations

import datetime as dt
import json
import xml.etree.ElementTree as ET

from sitepipe.emit import IGNORE_KEYS, Feed, SearchIndex, WriteMetadata, build_atom, clean_entry


def sample_posts() -> list[dict]:
    first = {
        "title": "Second",
        "date": dt.date(2023, 2, 1),
        "path": "blog/2023/second",
        "contents": "<p>Marathon &amp; Mesos</p>",
        "category": ["Releases"],
        "stats": object(),
        "mode": "0644",
        "lunr": True,
    }
    second = {"title": "First", "date": dt.date(2023, 1, 1), "path": "blog/2023/first", "contents": "<p>Hello</p>"}
    first["next"], second["previous"] = second, first
    first["previous"], second["next"] = None, None
    return [first, second]


def test_clean_entry_drops_noisy_keys():
    entry = clean_entry(sample_posts()[0], IGNORE_KEYS)
    assert not set(IGNORE_KEYS) & set(entry)
    assert entry["title"] == "Second"


def test_write_metadata_as_object(context):
    context.set("posts", sample_posts())
    files = WriteMetadata("posts", "blog/posts.json", as_object=True).run({}, context)
    data = json.loads(files["blog/posts.json"].text)
    assert [entry["title"] for entry in data["data"]] == ["Second", "First"]
    assert data["data"][0]["date"] == "2023-02-01"
    assert data["metadata"]["count"] == 2
    for entry in data["data"]:
        assert not {"contents", "next", "previous", "stats", "mode", "lunr"} & set(entry)


def test_write_metadata_as_list(context):
    context.set("posts", sample_posts())
    files = WriteMetadata("posts", "posts.json").run({}, context)
    assert [entry["path"] for entry in json.loads(files["posts.json"].text)] == ["blog/2023/second", "blog/2023/first"]


def test_search_index_is_valid_json(context):
    context.set("posts", sample_posts())
    files = SearchIndex("posts", "blog/search-index.json").run({}, context)
    data = json.loads(files["blog/search-index.json"].text)
    assert "invertedIndex" in data
    assert set(data["fields"]) == {"title", "category", "contents"}
    refs = {vector[0].split("/", 1)[1] for vector in data["fieldVectors"]}
    assert refs == {"blog/2023/second", "blog/2023/first"}


def test_feed_skipped_without_root_url(context):
    context.set("posts", sample_posts())
    context.set("site", {"url": ""})
    assert Feed("posts").run({}, context) == {}


def test_feed_rss(context):
    context.set("posts", sample_posts())
    context.set("site", {"url": "https://dcos.io/"})
    files = Feed("posts", limit=1).run({}, context)
    root = ET.fromstring(files["rss.xml"].contents)
    items = root.findall("./channel/item")
    assert len(items) == 1
    assert items[0].findtext("title") == "Second"
    assert items[0].findtext("link") == "https://dcos.io/blog/2023/second"
    assert "Marathon" in items[0].findtext("description")
    assert items[0].findtext("pubDate").startswith("Wed, 01 Feb 2023")


def test_atom_feed_parses():
    text = build_atom(sample_posts(), {"url": "https://dcos.io", "title": "Blog"}, "atom.xml")
    root = ET.fromstring(text.encode("utf-8"))
    ns = {"a": "http://www.w3.org/2005/Atom"}
    assert [e.findtext("a:title", namespaces=ns) for e in root.findall("a:entry", ns)] == ["Second", "First"]
