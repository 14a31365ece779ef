"""Build task declarations.

Each task wires one source group to its pipeline or asset step and writes
under the build directory.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from .assets import bundle_scripts, compile_styles, copy_assets
from .collection import Collections, DecorateCollection, Permalinks, Tags
from .config import SiteConfig
from .content import add_date_props, filter_past_events, format_date, load_events
from .emit import Feed, SearchIndex, WriteMetadata
from .errors import SitepipeError
from .log import get_logger
from .navigation import Navigation
from .pipeline import Pipeline, run_pipeline
from .render import Layouts, Markdown, TemplatePages, make_environment
from .stages import Define, FrontMatter, RewritePaths, Timestamp

logger = get_logger(__name__)

Task = Callable[[SiteConfig], object]
DOCS_IMAGE_PATTERNS = ["**/*.png", "**/*.gif", "**/*.jpg", "**/*.jpeg", "**/*.json", "**/*.sh"]


def add_formatted_date(post: dict) -> dict:
    post["formatted_date"] = format_date(post.get("date"), "%B %d")
    return post


def site_pipeline(config: SiteConfig, events: list[dict]) -> Pipeline:
    env = make_environment(config)
    return Pipeline(
        "build-site",
        [
            FrontMatter(),
            Timestamp(),
            Markdown(),
            TemplatePages(env, locals={"css_timestamp": config.css_timestamp, "events": events}),
            Define(format_date=format_date, root_url=config.root_url),
            Navigation(),
            Layouts(env),
            RewritePaths(),
        ],
    )


def blog_pipeline(config: SiteConfig) -> Pipeline:
    env = make_environment(config)
    return Pipeline(
        "build-blog",
        [
            FrontMatter(),
            Timestamp(),
            Markdown(),
            TemplatePages(env, locals={"css_timestamp": config.css_timestamp}),
            Collections(posts={"pattern": "*.html", "sort_by": "date", "reverse": True}),
            Permalinks(
                pattern=":title",
                date_format="%Y",
                linksets=[{"match": {"collection": "posts"}, "pattern": "blog/:date/:title"}],
            ),
            DecorateCollection("posts", add_formatted_date),
            WriteMetadata("posts", "blog/posts.json", as_object=True),
            Tags(
                handle="category",
                path="blog/category/:tag.html",
                layout="blog-category.html",
                sort_by="date",
                reverse=True,
            ),
            SearchIndex("posts", "blog/search-index.json", fields={"contents": 2, "title": 10, "category": 5}),
            Define(format_date=format_date, root_url=config.root_url),
            Feed("posts", limit=config.feed_limit),
            Layouts(env),
        ],
        initial=("site",),
    )


def docs_pipeline(config: SiteConfig, version: str) -> Pipeline:
    env = make_environment(config)
    return Pipeline(
        f"build-docs-{version}",
        [
            FrontMatter(),
            Timestamp(),
            Markdown(),
            Navigation(),
            Layouts(env, default="docs.html"),
            RewritePaths(),
            TemplatePages(env, locals={"css_timestamp": config.css_timestamp, "docsVersions": list(config.docs_versions)}),
        ],
        initial=("docsVersion", "docsVersions"),
    )


def build_site(config: SiteConfig) -> None:
    events = add_date_props(filter_past_events(load_events(config.src_path / "events.json")))
    run_pipeline(site_pipeline(config, events), config.src_path, ["**/*.j2", "*.md"], config.build_path, config)


def build_blog(config: SiteConfig) -> None:
    run_pipeline(
        blog_pipeline(config),
        config.src_path / "blog",
        ["*.md"],
        config.build_path,
        config,
        {"site": {"url": config.root_url}},
    )


def build_docs(config: SiteConfig, version: str) -> None:
    run_pipeline(
        docs_pipeline(config, version),
        config.docs_path / version,
        ["**/*.md"],
        config.build_path / "docs" / version,
        config,
        {"docsVersion": version, "docsVersions": list(config.docs_versions)},
    )


def copy_docs_images(config: SiteConfig, version: str) -> None:
    copy_assets(config.docs_path / version, DOCS_IMAGE_PATTERNS, config.build_path / "docs" / version)


def styles(config: SiteConfig) -> bool:
    return compile_styles(config.src_path / "styles", config.build_path / "styles", minify=config.is_production)


def javascript(config: SiteConfig) -> None:
    bundle_scripts(config.src_path / "scripts", config.build_path / "scripts", minify=config.is_production)


def copy(config: SiteConfig) -> None:
    copy_assets(config.src_path / "assets", ["**/*.*"], config.build_path / "assets")


def task_table(config: SiteConfig) -> dict[str, Task]:
    table: dict[str, Task] = {
        "build-site": build_site,
        "build-blog": build_blog,
    }
    for version in config.docs_versions:
        table[f"build-docs-{version}"] = lambda cfg, v=version: build_docs(cfg, v)
    for version in config.docs_versions:
        table[f"copy-docs-images-{version}"] = lambda cfg, v=version: copy_docs_images(cfg, v)
    table.update({"copy": copy, "javascript": javascript, "styles": styles})
    return table


def run_task(name: str, config: SiteConfig) -> bool:
    task = task_table(config).get(name)
    if task is None:
        raise SitepipeError(f"Unknown task: {name}")
    start = time.perf_counter()
    try:
        result = task(config)
    except (SitepipeError, OSError, ValueError) as exc:
        logger.error("task.failed", task=name, error=str(exc))
        return False
    ok = result is not False
    logger.info("task.done" if ok else "task.failed", task=name, elapsed=round(time.perf_counter() - start, 3))
    return ok


def build_all(config: SiteConfig, workers: int = 4) -> list[str]:
    """Run every build task; independent tasks share a thread pool.

    Returns the names of failed tasks.
    """
    names = list(task_table(config))
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        results = list(executor.map(lambda name: run_task(name, config), names))
    return [name for name, ok in zip(names, results) if not ok]
