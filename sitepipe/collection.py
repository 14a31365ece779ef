from __future__ import annotations

import datetime as dt
import re
from pathlib import PurePosixPath
from typing import Callable

from .content import coerce_datetime, slugify
from .files import FileSet, VirtualFile, match_path
from .pipeline import BuildContext, Stage

PLACEHOLDER_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def sort_value(value: object) -> tuple | None:
    """Comparable key for a metadata value; ``None`` when the value is absent."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    when = coerce_datetime(value)
    if when is not None:
        if when.tzinfo is None:
            when = when.replace(tzinfo=dt.timezone.utc)
        return (1, when.astimezone(dt.timezone.utc))
    return (2, str(value))


def sort_entries(entries: list[dict], sort_by: str | None, reverse: bool = False) -> list[dict]:
    if not sort_by:
        return list(reversed(entries)) if reverse else list(entries)
    keyed = [(sort_value(entry.get(sort_by)), entry) for entry in entries]
    # once any value reads as a date, values that don't are treated as missing
    if any(key is not None and key[0] == 1 for key, _entry in keyed):
        keyed = [(key if key is not None and key[0] == 1 else None, entry) for key, entry in keyed]
    present = [item for item in keyed if item[0] is not None]
    missing = [entry for key, entry in keyed if key is None]
    present.sort(key=lambda item: item[0], reverse=reverse)
    return [entry for _key, entry in present] + missing


def tag_values(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        items = [str(value)]
    return [item.strip() for item in items if item.strip()]


class Collections(Stage):
    """Group files into named, sorted collections.

    ``definitions`` maps a collection name to ``pattern``, ``sort_by`` and
    ``reverse``.  Files can also opt in with a ``collection`` front matter key.
    """

    name = "collections"

    def __init__(self, **definitions: dict):
        self.definitions = definitions
        self.provides = ("collections", *definitions)

    def members(self, name: str, files: FileSet) -> list[tuple[str, VirtualFile]]:
        pattern = self.definitions[name].get("pattern")
        selected = []
        for path, file in files.items():
            declared = tag_values(file.metadata.get("collection"))
            if name in declared or (pattern and match_path(path, pattern)):
                selected.append((path, file))
        return selected

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        collections = dict(context.metadata.get("collections") or {})
        for name, options in self.definitions.items():
            entries = []
            for path, file in self.members(name, files):
                meta = file.metadata
                names = tag_values(meta.get("collection"))
                if name not in names:
                    names.append(name)
                meta["collection"] = names
                meta["path"] = path
                meta["contents"] = file.text
                entries.append(meta)
            entries = sort_entries(entries, options.get("sort_by"), bool(options.get("reverse")))
            for position, entry in enumerate(entries):
                entry["previous"] = entries[position - 1] if position > 0 else None
                entry["next"] = entries[position + 1] if position + 1 < len(entries) else None
            collections[name] = entries
            context.set(name, entries)
        context.set("collections", collections)
        return files


class DecorateCollection(Stage):
    name = "decorate-collection"

    def __init__(self, collection: str, callback: Callable[[dict], dict]):
        self.collection = collection
        self.callback = callback
        self.requires = (collection,)

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        items = [self.callback(item) for item in context.require(self.collection)]
        context.set(self.collection, items)
        collections = context.metadata.get("collections")
        if isinstance(collections, dict):
            collections[self.collection] = items
        return files


class Permalinks(Stage):
    name = "permalinks"

    def __init__(self, pattern: str = ":title", date_format: str = "%Y", linksets: list[dict] | None = None):
        self.pattern = pattern
        self.date_format = date_format
        self.linksets = linksets or []
        if any("collection" in linkset.get("match", {}) for linkset in self.linksets):
            self.requires = ("collections",)

    def pattern_for(self, meta: dict) -> str:
        for linkset in self.linksets:
            match = linkset.get("match", {})
            if all(self._matches(meta, key, value) for key, value in match.items()):
                return linkset["pattern"]
        return self.pattern

    @staticmethod
    def _matches(meta: dict, key: str, value: object) -> bool:
        current = meta.get(key)
        if isinstance(current, (list, tuple)):
            return value in current
        return current == value

    def resolve(self, pattern: str, meta: dict) -> str | None:
        missing = False

        def repl(match: re.Match) -> str:
            nonlocal missing
            key = match.group(1)
            value = meta.get(key)
            if key == "date":
                when = coerce_datetime(value)
                if when is None:
                    missing = True
                    return ""
                return when.strftime(self.date_format)
            if value is None or str(value).strip() == "":
                missing = True
                return ""
            return slugify(str(value))

        resolved = PLACEHOLDER_RE.sub(repl, pattern)
        return None if missing else resolved.strip("/")

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        out: FileSet = {}
        for path, file in files.items():
            pure = PurePosixPath(path)
            if pure.suffix != ".html" or file.metadata.get("permalink") is False:
                out[path] = file
                continue
            link = self.resolve(self.pattern_for(file.metadata), file.metadata)
            if link is None:
                link = pure.with_suffix("").as_posix() if pure.name != "index.html" else pure.parent.as_posix()
                link = "" if link == "." else link
            file.metadata["path"] = link
            out[f"{link}/index.html" if link else "index.html"] = file
        return out


class Tags(Stage):
    name = "tags"
    provides = ("tags",)

    def __init__(
        self,
        handle: str = "tags",
        path: str = "tags/:tag.html",
        layout: str = "tag.html",
        sort_by: str | None = "date",
        reverse: bool = False,
    ):
        self.handle = handle
        self.path = path
        self.layout = layout
        self.sort_by = sort_by
        self.reverse = reverse

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        tagged: dict[str, list[dict]] = {}
        for path, file in files.items():
            values = tag_values(file.metadata.get(self.handle))
            if not values:
                continue
            file.metadata[self.handle] = values
            file.metadata.setdefault("path", path)
            for value in values:
                tagged.setdefault(value, []).append(file.metadata)
        tags = {}
        for tag in sorted(tagged, key=str.lower):
            posts = sort_entries(tagged[tag], self.sort_by, self.reverse)
            tags[tag] = posts
            out_path = self.path.replace(":tag", slugify(tag))
            files[out_path] = VirtualFile(
                b"",
                {
                    "tag": tag,
                    "title": tag,
                    "posts": posts,
                    "layout": self.layout,
                    "path": PurePosixPath(out_path).with_suffix("").as_posix(),
                },
            )
        context.set("tags", tags)
        return files
