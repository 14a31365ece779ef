from __future__ import annotations

import datetime as dt
import json
import re
from pathlib import Path

import frontmatter

TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")
DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%Y/%m/%d")


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_front_matter(text: str) -> tuple[dict, str]:
    """Split a leading YAML block from the body.

    Text without a front matter block comes back with empty metadata.
    YAML errors propagate to the caller.
    """
    post = frontmatter.loads(text.lstrip("\ufeff"))
    return dict(post.metadata), post.content


def strip_tags(html_text: str) -> str:
    return WHITESPACE_RE.sub(" ", TAG_RE.sub(" ", html_text)).strip()


def coerce_datetime(value: object) -> dt.datetime | None:
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return dt.datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in DATE_FORMATS:
            try:
                return dt.datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def format_date(value: object, fmt: str = "%B %d") -> str:
    parsed = coerce_datetime(value)
    if parsed is None:
        return ""
    return parsed.strftime(fmt)


def _now_like(value: dt.datetime, now: dt.datetime) -> dt.datetime:
    if value.tzinfo is None and now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    if value.tzinfo is not None and now.tzinfo is None:
        return now.astimezone()
    return now


def filter_past_events(events: list[dict], now: dt.datetime | None = None) -> list[dict]:
    now = now or dt.datetime.now()
    upcoming = []
    for event in events:
        when = coerce_datetime(event.get("date"))
        if when is not None and when > _now_like(when, now):
            upcoming.append(event)
    return upcoming


def add_date_props(events: list[dict]) -> list[dict]:
    decorated = []
    for event in events:
        when = coerce_datetime(event.get("date"))
        if when is None:
            decorated.append(dict(event))
            continue
        decorated.append({**event, "day": str(when.day), "month": when.strftime("%b")})
    return decorated


def load_events(path: Path) -> list[dict]:
    if not path.exists():
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"Events file must contain a JSON array: {path}")
    return [item for item in data if isinstance(item, dict)]
