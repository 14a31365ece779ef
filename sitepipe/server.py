"""Development server with rebuild-on-change and browser reload."""

from __future__ import annotations

import asyncio
import enum
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from watchfiles import watch

from .config import SiteConfig
from .files import match_path
from .log import get_logger
from .tasks import build_all, run_task
from .utils import html_suffixed

logger = get_logger(__name__)

RELOAD_SCRIPT = """(function () {
  var source = new EventSource("/__livereload");
  source.onmessage = function () { window.location.reload(); };
})();
"""


class ServerState(enum.Enum):
    IDLE = "idle"
    BUILDING = "building"
    SERVING = "serving"


class ReloadHub:
    """Generation counter bumped after every rebuild."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def notify(self) -> None:
        with self._lock:
            self._generation += 1
        logger.debug("reload.notify", generation=self._generation)


def rewrite_rules(config: SiteConfig) -> list[tuple[re.Pattern, str]]:
    return [(re.compile(r"^/docs/latest/(.*)"), f"/docs/{config.current_version}/\\1")]


def resolve_path(url_path: str, build_dir: Path, rules: list[tuple[re.Pattern, str]]) -> str:
    for pattern, replacement in rules:
        url_path = pattern.sub(replacement, url_path, count=1)
    if url_path.endswith(("/", ".html")):
        return url_path
    candidate = html_suffixed(url_path)
    if (build_dir / candidate.lstrip("/")).is_file():
        return candidate
    return url_path


class RewriteMiddleware:
    def __init__(self, app, build_dir: Path, rules: list[tuple[re.Pattern, str]]):
        self.app = app
        self.build_dir = build_dir
        self.rules = rules

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            path = resolve_path(scope["path"], self.build_dir, self.rules)
            if path != scope["path"]:
                scope = dict(scope, path=path, raw_path=path.encode("utf-8"))
        await self.app(scope, receive, send)


def create_app(config: SiteConfig, hub: ReloadHub, poll_interval: float = 0.25) -> FastAPI:
    app = FastAPI(title="sitepipe dev server", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/__livereload.js")
    async def livereload_script() -> Response:
        return Response(RELOAD_SCRIPT, media_type="application/javascript")

    @app.get("/__livereload")
    async def livereload(request: Request) -> StreamingResponse:
        async def events():
            seen = hub.generation
            yield ": connected\n\n"
            while not await request.is_disconnected():
                await asyncio.sleep(poll_interval)
                current = hub.generation
                if current != seen:
                    seen = current
                    yield "data: reload\n\n"

        return StreamingResponse(events(), media_type="text/event-stream")

    app.mount("/", StaticFiles(directory=str(config.build_path), html=True, check_dir=False), name="build")
    app.add_middleware(RewriteMiddleware, build_dir=config.build_path, rules=rewrite_rules(config))
    return app


@dataclass(frozen=True)
class WatchGroup:
    name: str
    patterns: tuple[str, ...]
    tasks: tuple[str, ...]


def watch_groups(config: SiteConfig) -> list[WatchGroup]:
    src = config.src_dir
    groups = [
        WatchGroup("pages", (f"{src}/**/*.j2", f"{src}/*.md", f"{src}/events.json"), ("build-site",)),
        WatchGroup("blog", (f"{src}/blog/*.md",), ("build-blog",)),
        WatchGroup("styles", (f"{src}/styles/**/*.scss",), ("styles",)),
        WatchGroup("scripts", (f"{src}/scripts/**/*.js",), ("javascript",)),
        WatchGroup("assets", (f"{src}/assets/**/*.*",), ("copy",)),
        WatchGroup("layouts", (f"{config.layouts_dir}/**/*.*",), ("build-site", "build-blog")),
    ]
    for version in config.docs_versions:
        groups.append(
            WatchGroup(f"docs-{version}", (f"{config.docs_dir}/{version}/**/*.md",), (f"build-docs-{version}",))
        )
    return groups


def tasks_for_changes(paths: Iterable[str], groups: list[WatchGroup]) -> list[str]:
    """Map changed project-relative paths to tasks, in group order, once each."""
    changed = list(paths)
    tasks: list[str] = []
    for group in groups:
        if any(match_path(path, pattern) for path in changed for pattern in group.patterns):
            for task in group.tasks:
                if task not in tasks:
                    tasks.append(task)
    return tasks


class DevServer:
    def __init__(self, config: SiteConfig, runner: Callable[[str, SiteConfig], bool] = run_task):
        self.config = config
        self.runner = runner
        self.hub = ReloadHub()
        self.groups = watch_groups(config)
        self.state = ServerState.IDLE
        self.stop_event = threading.Event()

    def rebuild(self, paths: Iterable[str]) -> list[str]:
        tasks = tasks_for_changes(paths, self.groups)
        if not tasks:
            return []
        self.state = ServerState.BUILDING
        try:
            failed = [task for task in tasks if not self.runner(task, self.config)]
        finally:
            self.state = ServerState.SERVING
        self.hub.notify()
        if failed:
            logger.warning("rebuild.failed", tasks=failed)
        return tasks

    def handle_changes(self, paths: list[str]) -> list[str]:
        """Rebuild for one batch of changes; the watch loop outlives any failure."""
        try:
            return self.rebuild(paths)
        except Exception:
            logger.exception("rebuild.crashed", files=len(paths))
            return []

    def relative(self, path: str) -> str:
        try:
            return Path(path).resolve().relative_to(self.config.root).as_posix()
        except ValueError:
            return path

    def watch_roots(self) -> list[Path]:
        roots = [self.config.src_path, self.config.layouts_path, self.config.docs_path]
        return [root for root in roots if root.exists()]

    def watch_loop(self) -> None:
        roots = self.watch_roots()
        if not roots:
            logger.warning("watch.no_roots")
            return
        for changes in watch(*roots, debounce=self.config.debounce_ms, stop_event=self.stop_event):
            paths = sorted(self.relative(path) for _change, path in changes)
            logger.info("watch.changed", files=len(paths))
            self.handle_changes(paths)

    def start(self) -> None:
        self.state = ServerState.BUILDING
        failed = build_all(self.config)
        if failed:
            logger.warning("build.failed", tasks=failed)
        self.state = ServerState.SERVING
        watcher = threading.Thread(target=self.watch_loop, name="sitepipe-watch", daemon=True)
        watcher.start()
        app = create_app(self.config, self.hub)
        logger.info("serve.start", url=f"http://{self.config.host}:{self.config.port}/")
        try:
            uvicorn.run(app, host=self.config.host, port=self.config.port, log_level="warning")
        finally:
            self.stop_event.set()
            self.state = ServerState.IDLE
