from __future__ import annotations

import datetime as dt
import json

import pytest
import yaml

from sitepipe.content import (
    add_date_props,
    coerce_datetime,
    filter_past_events,
    format_date,
    load_events,
    parse_front_matter,
    slugify,
    strip_tags,
)
from sitepipe.utils import html_suffixed, merge


def test_slugify_collapses_punctuation():
    assert slugify("Hello, World!") == "hello-world"
    assert slugify("___") == "post"


def test_front_matter_split():
    meta, body = parse_front_matter("---\ntitle: Foo\nmenu_order: 2\n---\n# Hi\n")
    assert meta == {"title": "Foo", "menu_order": 2}
    assert body.strip() == "# Hi"


def test_front_matter_absent_passes_body_through():
    meta, body = parse_front_matter("# Only body\n")
    assert meta == {}
    assert body.strip() == "# Only body"


def test_front_matter_malformed_yaml_raises():
    with pytest.raises(yaml.YAMLError):
        parse_front_matter("---\ntitle: [unclosed\n---\nbody\n")


def test_coerce_datetime_accepts_dates_and_strings():
    assert coerce_datetime(dt.date(2023, 2, 1)) == dt.datetime(2023, 2, 1)
    assert coerce_datetime("2023-02-01T10:00:00") == dt.datetime(2023, 2, 1, 10)
    assert coerce_datetime("2023-02-01T10:00:00Z").tzinfo is not None
    assert coerce_datetime("February 1, 2023") == dt.datetime(2023, 2, 1)
    assert coerce_datetime("not a date") is None
    assert coerce_datetime(None) is None


def test_format_date():
    assert format_date("2023-02-01", "%B %d") == "February 01"
    assert format_date(None) == ""


def test_filter_past_events_keeps_strictly_future():
    now = dt.datetime(2024, 6, 1, 12, 0)
    events = [
        {"date": "2024-05-31", "name": "past"},
        {"date": "2024-06-01T12:00:00", "name": "now"},
        {"date": "2024-06-02", "name": "future"},
        {"name": "undated"},
    ]
    assert [event["name"] for event in filter_past_events(events, now)] == ["future"]


def test_filter_past_events_mixed_timezones():
    now = dt.datetime(2024, 6, 1, tzinfo=dt.timezone.utc)
    events = [{"date": "2030-01-01"}, {"date": "2020-01-01T00:00:00Z"}]
    assert filter_past_events(events, now) == [{"date": "2030-01-01"}]


def test_add_date_props_derives_day_and_month():
    decorated = add_date_props([{"date": "2024-03-05", "name": "meetup"}])
    assert decorated == [{"date": "2024-03-05", "name": "meetup", "day": "5", "month": "Mar"}]


def test_add_date_props_does_not_mutate_input():
    events = [{"date": "2024-03-05"}]
    add_date_props(events)
    assert events == [{"date": "2024-03-05"}]


def test_load_events(tmp_path):
    path = tmp_path / "events.json"
    assert load_events(path) == []
    path.write_text(json.dumps([{"date": "2024-01-01"}, "junk"]), encoding="utf-8")
    assert load_events(path) == [{"date": "2024-01-01"}]
    path.write_text(json.dumps({"date": "2024-01-01"}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_events(path)


def test_strip_tags():
    assert strip_tags("<p>Hello <b>there</b></p>\n<p>x</p>") == "Hello there x"


def test_merge_is_shallow_and_last_wins():
    inner = {"a": 1}
    merged = merge({"x": inner, "y": 1}, {"y": 2})
    assert merged == {"x": {"a": 1}, "y": 2}
    assert merged["x"] is inner


def test_html_suffixed():
    assert html_suffixed("/about") == "/about.html"
    assert html_suffixed("/docs/intro/") == "/docs/intro.html"
