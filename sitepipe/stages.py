from __future__ import annotations

from pathlib import PurePosixPath

import yaml

from .content import parse_front_matter
from .errors import BuildError
from .files import FileSet
from .pipeline import BuildContext, Stage

TEXT_SUFFIXES = (".md", ".j2", ".html")


def pretty_path(path: str) -> str:
    pure = PurePosixPath(path)
    if pure.name == "index.html":
        return path
    if pure.suffix == ".html":
        return pure.with_suffix("").joinpath("index.html").as_posix()
    return path


class FrontMatter(Stage):
    name = "front-matter"

    def __init__(self, suffixes: tuple[str, ...] = TEXT_SUFFIXES):
        self.suffixes = suffixes

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        for path, file in files.items():
            if PurePosixPath(path).suffix not in self.suffixes:
                continue
            try:
                meta, body = parse_front_matter(file.text)
            except (yaml.YAMLError, UnicodeDecodeError) as exc:
                raise BuildError(f"bad front matter: {exc}", stage=self.name, path=path) from exc
            file.metadata.update(meta)
            file.text = body
        return files


class Timestamp(Stage):
    name = "timestamp"

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        for path, file in files.items():
            if path.endswith(".md"):
                file.metadata["css_timestamp"] = context.config.css_timestamp
        return files


class Define(Stage):
    name = "define"

    def __init__(self, **values: object):
        self.values = values
        self.provides = tuple(values)

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        context.metadata.update(self.values)
        return files


class RewritePaths(Stage):
    name = "rewrite-paths"

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        return {pretty_path(path): file for path, file in files.items()}
