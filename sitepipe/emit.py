from __future__ import annotations

import datetime as dt
import html
import json

import lunr

from .content import coerce_datetime, strip_tags
from .files import FileSet, VirtualFile
from .log import get_logger
from .pipeline import BuildContext, Stage
from .utils import iso_date, join_url, rfc822_date

logger = get_logger(__name__)

IGNORE_KEYS = ("contents", "next", "previous", "stats", "mode", "lunr")
FEED_LIMIT = 20


def json_default(value: object) -> object:
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, (set, tuple)):
        return list(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def clean_entry(entry: dict, ignore: tuple[str, ...] | list[str]) -> dict:
    return {key: value for key, value in entry.items() if key not in ignore}


def dump_json(data: object) -> bytes:
    return json.dumps(data, indent=2, ensure_ascii=True, default=json_default).encode("utf-8")


class WriteMetadata(Stage):
    name = "write-metadata"

    def __init__(self, collection: str, path: str, ignore: tuple[str, ...] = IGNORE_KEYS, as_object: bool = False):
        self.collection = collection
        self.path = path
        self.ignore = tuple(ignore)
        self.as_object = as_object
        self.requires = (collection,)

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        entries = [clean_entry(entry, self.ignore) for entry in context.require(self.collection)]
        if self.as_object:
            data: object = {"metadata": {"name": self.collection, "count": len(entries)}, "data": entries}
        else:
            data = entries
        files[self.path] = VirtualFile(dump_json(data))
        return files


def search_document(entry: dict, fields: dict[str, int]) -> dict:
    document = {"id": entry.get("path", "")}
    for field in fields:
        value = entry.get(field)
        if isinstance(value, (list, tuple)):
            value = " ".join(str(item) for item in value)
        if field == "contents":
            value = strip_tags(value or "")
        document[field] = "" if value is None else str(value)
    return document


def empty_index(fields: dict[str, int]) -> dict:
    """Serialized index with no documents; lunr cannot build one itself."""
    return {
        "version": lunr.__TARGET_JS_VERSION__,
        "fields": list(fields),
        "fieldVectors": [],
        "invertedIndex": [],
        "pipeline": ["stemmer"],
    }


class SearchIndex(Stage):
    """Serialized lunr.js-compatible index over one collection."""

    name = "search-index"

    def __init__(self, collection: str, path: str, fields: dict[str, int] | None = None):
        self.collection = collection
        self.path = path
        self.fields = fields or {"title": 10, "category": 5, "contents": 2}
        self.requires = (collection,)

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        entries = context.require(self.collection)
        documents = [search_document(entry, self.fields) for entry in entries]
        if documents:
            weights = [{"field_name": name, "boost": boost} for name, boost in self.fields.items()]
            data = lunr.lunr(ref="id", fields=weights, documents=documents).serialize()
        else:
            data = empty_index(self.fields)
        files[self.path] = VirtualFile(json.dumps(data).encode("utf-8"))
        logger.debug("search.indexed", path=self.path, documents=len(documents))
        return files


def entry_date(entry: dict) -> dt.datetime:
    return coerce_datetime(entry.get("date")) or dt.datetime.now(dt.timezone.utc)


def build_rss(entries: list[dict], site: dict, limit: int = FEED_LIMIT) -> str:
    site_url = site["url"].rstrip("/")
    items = []
    for entry in entries[:limit]:
        link = join_url(site_url, entry.get("path", ""))
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(str(entry.get('title', '')))}</title>",
                    f"<link>{link}</link>",
                    f"<guid>{link}</guid>",
                    f"<pubDate>{rfc822_date(entry_date(entry))}</pubDate>",
                    f"<description>{html.escape(entry.get('contents', ''))}</description>",
                    "</item>",
                ]
            )
        )
    last_build = rfc822_date(entry_date(entries[0])) if entries else rfc822_date(dt.datetime.now(dt.timezone.utc))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{html.escape(site.get('title', ''))}</title>",
            f"<link>{site_url}/</link>",
            f"<description>{html.escape(site.get('description', ''))}</description>",
            f"<lastBuildDate>{last_build}</lastBuildDate>",
            "\n".join(items),
            "</channel>",
            "</rss>",
        ]
    )


def build_atom(entries: list[dict], site: dict, path: str, limit: int = FEED_LIMIT) -> str:
    site_url = site["url"].rstrip("/")
    updated = iso_date(entry_date(entries[0])) if entries else iso_date(dt.datetime.now(dt.timezone.utc))
    items = []
    for entry in entries[:limit]:
        link = join_url(site_url, entry.get("path", ""))
        items.append(
            "\n".join(
                [
                    "<entry>",
                    f"<title>{html.escape(str(entry.get('title', '')))}</title>",
                    f'<link href="{link}" />',
                    f"<id>{link}</id>",
                    f"<updated>{iso_date(entry_date(entry))}</updated>",
                    f'<content type="html">{html.escape(entry.get("contents", ""))}</content>',
                    "</entry>",
                ]
            )
        )
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{html.escape(site.get('title', ''))}</title>",
            f"<id>{site_url}/</id>",
            f"<updated>{updated}</updated>",
            f'<link href="{join_url(site_url, path)}" rel="self" />',
            f'<link href="{site_url}/" />',
            "\n".join(items),
            "</feed>",
        ]
    )


class Feed(Stage):
    name = "feed"

    def __init__(self, collection: str, path: str = "rss.xml", atom_path: str | None = None, limit: int = FEED_LIMIT):
        self.collection = collection
        self.path = path
        self.atom_path = atom_path
        self.limit = limit
        self.requires = (collection, "site")

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        site = context.require("site")
        if not site.get("url"):
            logger.warning("feed.skipped", reason="no root url configured", collection=self.collection)
            return files
        entries = context.require(self.collection)
        files[self.path] = VirtualFile(build_rss(entries, site, self.limit).encode("utf-8"))
        if self.atom_path:
            files[self.atom_path] = VirtualFile(build_atom(entries, site, self.atom_path, self.limit).encode("utf-8"))
        return files
