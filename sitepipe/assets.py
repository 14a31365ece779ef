from __future__ import annotations

import re
from pathlib import Path

import csscompressor
import dukpy
import rjsmin
import sass

from .errors import BuildError
from .files import copy_files, list_files, write_text
from .log import get_logger

logger = get_logger(__name__)

VENDOR_PREFIXES = {
    "appearance": ("-webkit-", "-moz-"),
    "user-select": ("-webkit-", "-moz-", "-ms-"),
    "backdrop-filter": ("-webkit-",),
    "text-size-adjust": ("-webkit-", "-moz-", "-ms-"),
    "hyphens": ("-webkit-", "-ms-"),
    "tab-size": ("-moz-",),
    "mask-image": ("-webkit-",),
    "box-decoration-break": ("-webkit-",),
}
DECLARATION_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<prop>" + "|".join(re.escape(p) for p in VENDOR_PREFIXES) + r")\s*:\s*(?P<value>[^;{}\n]*);",
    re.MULTILINE,
)


def add_vendor_prefixes(css: str) -> str:
    """Prefix declarations in expanded CSS (one declaration per line)."""

    def repl(match: re.Match) -> str:
        indent, prop, value = match.group("indent"), match.group("prop"), match.group("value").strip()
        lines = [f"{indent}{prefix}{prop}: {value};" for prefix in VENDOR_PREFIXES[prop]]
        lines.append(f"{indent}{prop}: {value};")
        return "\n".join(lines)

    return DECLARATION_RE.sub(repl, css)


def compile_styles(
    src: Path,
    dest: Path,
    include_paths: list[Path] | None = None,
    minify: bool = False,
) -> bool:
    """Compile every non-partial ``.scss`` under ``src`` into ``dest``.

    A compile error is logged and leaves the previous output in place.
    """
    compiled: dict[Path, str] = {}
    paths = [str(src)] + [str(path) for path in include_paths or []]
    for scss in list_files(src, ["**/*.scss"]):
        if scss.name.startswith("_"):
            continue
        try:
            css = sass.compile(filename=str(scss), output_style="expanded", include_paths=paths)
        except sass.CompileError as exc:
            logger.error("styles.compile_failed", file=str(scss), error=str(exc))
            return False
        css = add_vendor_prefixes(css)
        if minify:
            css = csscompressor.compress(css)
        compiled[dest / scss.relative_to(src).with_suffix(".css")] = css
    for target, css in compiled.items():
        write_text(target, css)
    logger.info("styles.done", files=len(compiled), dest=str(dest))
    return True


def transpile(source: str, path: Path) -> str:
    """Compile ES2015 source down to ES5 with Babel's es2015 preset."""
    try:
        return dukpy.babel_compile(source, presets=["es2015"])["code"]
    except dukpy.JSRuntimeError as exc:
        raise BuildError(str(exc), pipeline="javascript", stage="transpile", path=str(path)) from exc


def bundle_scripts(src: Path, dest: Path, name: str = "main.min.js", minify: bool = False) -> Path:
    sources = list_files(src, ["**/*.js"])
    bundle = "\n;\n".join(transpile(path.read_text(encoding="utf-8"), path) for path in sources)
    if minify:
        bundle = rjsmin.jsmin(bundle)
    target = dest / name
    write_text(target, bundle)
    logger.info("scripts.done", files=len(sources), bundle=str(target))
    return target


def copy_assets(src: Path, patterns: list[str], dest: Path) -> list[Path]:
    copied = copy_files(src, patterns, dest)
    logger.info("assets.copied", files=len(copied), dest=str(dest))
    return copied
