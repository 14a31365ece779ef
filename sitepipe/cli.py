from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path

from .config import SiteConfig, build_config
from .errors import SitepipeError
from .log import configure_logging, get_logger
from .server import DevServer
from .tasks import build_all, run_task, task_table
from .utils import clean_output_dir

logger = get_logger(__name__)


def load_site_config(args: argparse.Namespace, **overrides: object) -> SiteConfig:
    return build_config(
        Path(args.root),
        Path(args.config),
        env=os.environ.get("NODE_ENV"),
        **overrides,
    )


def cmd_build(args: argparse.Namespace) -> int:
    config = load_site_config(args)
    start = time.perf_counter()
    if args.clean:
        clean_output_dir(config.build_path, config.root)
    if args.task:
        failed = [name for name in args.task if not run_task(name, config)]
    else:
        failed = build_all(config, workers=args.workers)
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    if failed:
        print(f"Failed tasks: {', '.join(failed)}", file=sys.stderr)
        return 1
    print(f"Site generated in: {config.build_path}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {"live_reload": True}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    DevServer(load_site_config(args, **overrides)).start()
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    config = load_site_config(args)
    failed = build_all(config, workers=args.workers)
    if failed:
        print(f"Smoke build failed: {', '.join(failed)}", file=sys.stderr)
        return 1
    print("Smoke build passed.")
    return 0


def cmd_tasks(args: argparse.Namespace) -> int:
    for name in task_table(load_site_config(args)):
        print(name)
    return 0


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitepipe", description="Static site build pipeline.")
    parser.add_argument("--root", default=".", help="Project root directory.")
    parser.add_argument("--config", default="site.toml", help="Path to project config file (TOML/YAML/JSON).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every pipeline stage.")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines.")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Run the full build (or selected tasks).")
    build.add_argument("task", nargs="*", help="Task names to run instead of the full build.")
    build.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Remove the build directory first.",
    )
    build.add_argument("--workers", type=int, default=4, help="Concurrent tasks.")
    build.set_defaults(func=cmd_build)

    serve = sub.add_parser("serve", help="Build, serve the output and rebuild on change.")
    serve.add_argument("--host", default="", help="Bind address.")
    serve.add_argument("--port", type=int, default=0, help="Port.")
    serve.set_defaults(func=cmd_serve)

    test = sub.add_parser("test", help="Build once and exit with a status code.")
    test.add_argument("--workers", type=int, default=4, help="Concurrent tasks.")
    test.set_defaults(func=cmd_test)

    tasks = sub.add_parser("tasks", help="List task names.")
    tasks.set_defaults(func=cmd_tasks)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = make_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, json_logs=args.json_logs)
    try:
        code = args.func(args)
    except SitepipeError as exc:
        logger.error("command.failed", error=str(exc))
        code = 1
    sys.exit(code)
