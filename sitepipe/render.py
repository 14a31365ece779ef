from __future__ import annotations

import html
from pathlib import PurePosixPath

import markdown
from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from markupsafe import Markup

from .autolink import BareUrlExtension
from .config import SiteConfig
from .content import format_date, slugify
from .errors import BuildError
from .files import FileSet, VirtualFile, match_path
from .log import get_logger
from .pipeline import BuildContext, Stage
from .utils import merge

logger = get_logger(__name__)

MARKDOWN_EXTENSIONS = ["tables", "fenced_code", "codehilite", "smarty", BareUrlExtension()]
MARKDOWN_CONFIGS = {"codehilite": {"guess_lang": False}}


def make_environment(config: SiteConfig) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(config.layouts_path)),
        autoescape=select_autoescape(["html", "j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["date"] = format_date
    env.filters["slugify"] = slugify
    env.globals.update(
        root_url=config.root_url,
        css_timestamp=config.css_timestamp,
        live_reload=config.live_reload,
        format_date=format_date,
    )
    return env


def render_markdown(text: str, md: markdown.Markdown | None = None) -> str:
    md = md or markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, extension_configs=MARKDOWN_CONFIGS)
    try:
        return md.reset().convert(text)
    except Exception as exc:
        logger.error("markdown.failed", error=str(exc))
        return f"<pre>{html.escape(text)}</pre>"


def with_suffix(path: str, suffix: str) -> str:
    return PurePosixPath(path).with_suffix(suffix).as_posix()


class Markdown(Stage):
    name = "markdown"

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, extension_configs=MARKDOWN_CONFIGS)
        out: FileSet = {}
        for path, file in files.items():
            if PurePosixPath(path).suffix != ".md":
                out[path] = file
                continue
            file.text = render_markdown(file.text, md)
            out[with_suffix(path, ".html")] = file
        return out


class TemplatePages(Stage):
    """Render ``.j2`` source pages into ``.html``."""

    name = "template-pages"

    def __init__(self, env: Environment, locals: dict | None = None, use_metadata: bool = True):
        self.env = env
        self.locals = locals or {}
        self.use_metadata = use_metadata

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        out: FileSet = {}
        for path, file in files.items():
            if PurePosixPath(path).suffix != ".j2":
                out[path] = file
                continue
            global_meta = context.metadata if self.use_metadata else {}
            values = merge(self.locals, global_meta, file.metadata, {"path": path})
            try:
                file.text = self.env.from_string(file.text).render(values)
            except TemplateError as exc:
                raise BuildError(f"template error: {exc}", stage=self.name, path=path) from exc
            out[with_suffix(path, ".html")] = file
        return out


class Layouts(Stage):
    name = "layouts"

    def __init__(self, env: Environment, pattern: str = "**/*.html", default: str | None = None, locals: dict | None = None):
        self.env = env
        self.pattern = pattern
        self.default = default
        self.locals = locals or {}

    def layout_for(self, file: VirtualFile) -> str | None:
        return file.metadata.get("layout") or self.default

    def run(self, files: FileSet, context: BuildContext) -> FileSet:
        for path, file in files.items():
            if not match_path(path, self.pattern):
                continue
            layout = self.layout_for(file)
            if not layout:
                continue
            values = merge(
                self.locals,
                context.metadata,
                file.metadata,
                {"contents": Markup(file.text), "path": path},
            )
            try:
                file.text = self.env.get_template(layout).render(values)
            except TemplateError as exc:
                raise BuildError(f"layout {layout!r}: {exc}", stage=self.name, path=path) from exc
        return files
