from __future__ import annotations

import pytest

from sitepipe.errors import BuildError
from sitepipe.files import VirtualFile
from sitepipe.render import Layouts, Markdown, TemplatePages, make_environment, render_markdown
from sitepipe.stages import Define, FrontMatter, RewritePaths, Timestamp, pretty_path


def vf(text: str, **meta) -> VirtualFile:
    return VirtualFile(text.encode("utf-8"), dict(meta))


@pytest.mark.parametrize(
    "path,expected",
    [
        ("foo.html", "foo/index.html"),
        ("docs/intro.html", "docs/intro/index.html"),
        ("index.html", "index.html"),
        ("docs/index.html", "docs/index.html"),
        ("feed.xml", "feed.xml"),
        ("data.json", "data.json"),
    ],
)
def test_pretty_path(path, expected):
    assert pretty_path(path) == expected


@pytest.mark.parametrize("path", ["foo.html", "a/b/c.html", "index.html", "x.css"])
def test_pretty_path_is_idempotent(path):
    once = pretty_path(path)
    assert pretty_path(once) == once


def test_rewrite_paths_stage(context):
    files = {"foo.html": vf("a"), "index.html": vf("b"), "style.css": vf("c")}
    out = RewritePaths().run(files, context)
    assert list(out) == ["foo/index.html", "index.html", "style.css"]


def test_front_matter_merges_into_metadata(context):
    files = {"foo.md": vf("---\ntitle: Foo\n---\nBody\n", source="foo.md"), "logo.png": VirtualFile(b"\x89PNG")}
    FrontMatter().run(files, context)
    assert files["foo.md"].metadata == {"source": "foo.md", "title": "Foo"}
    assert files["foo.md"].text.strip() == "Body"
    assert files["logo.png"].contents == b"\x89PNG"


def test_front_matter_error_aborts(context):
    files = {"bad.md": vf("---\ntitle: [oops\n---\n")}
    with pytest.raises(BuildError) as info:
        FrontMatter().run(files, context)
    assert info.value.path == "bad.md"


def test_timestamp_only_on_markdown(context):
    files = {"a.md": vf(""), "b.j2": vf("")}
    Timestamp().run(files, context)
    assert files["a.md"].metadata["css_timestamp"] == context.config.css_timestamp
    assert "css_timestamp" not in files["b.j2"].metadata


def test_markdown_renders_and_renames(context):
    files = {"foo.md": vf("# Hi\n", title="Foo"), "raw.txt": vf("# not markdown")}
    out = Markdown().run(files, context)
    assert list(out) == ["foo.html", "raw.txt"]
    assert "<h1>Hi</h1>" in out["foo.html"].text
    assert out["foo.html"].metadata == {"title": "Foo"}
    assert out["raw.txt"].text == "# not markdown"


def test_markdown_dialect():
    text = (
        '"Quoted" -- text\n\n'
        "| a | b |\n|---|---|\n| 1 | 2 |\n\n"
        "```python\nprint(1)\n```\n\n"
        "Visit https://dcos.io/docs today.\n"
    )
    html = render_markdown(text)
    assert "&ldquo;Quoted&rdquo;" in html
    assert "&ndash;" in html
    assert "<table>" in html
    assert "codehilite" in html
    assert '<a href="https://dcos.io/docs">https://dcos.io/docs</a>' in html


def test_bare_www_links_get_scheme():
    html = render_markdown("go to www.example.com")
    assert '<a href="http://www.example.com">www.example.com</a>' in html


def test_explicit_links_are_not_relinked():
    html = render_markdown("[site](https://dcos.io) and <https://mesos.apache.org>")
    assert html.count("<a ") == 2


def test_markdown_failure_is_best_effort():
    class Broken:
        def reset(self):
            return self

        def convert(self, text):
            raise ValueError("bad")

    assert render_markdown("<b>x</b>", Broken()) == "<pre>&lt;b&gt;x&lt;/b&gt;</pre>"


def test_define_sets_global_metadata(context):
    stage = Define(root_url="https://x.io")
    assert stage.provides == ("root_url",)
    stage.run({}, context)
    assert context.metadata["root_url"] == "https://x.io"


def test_layouts_select_by_metadata_then_default(config, context):
    env = make_environment(config)
    files = {
        "a.html": vf("<p>A</p>", title="A", layout="page.html"),
        "b.html": vf("<p>B</p>", title="B"),
        "c.json": vf("{}"),
    }
    Layouts(env).run(files, context)
    assert files["a.html"].text == "<main>A|<p>A</p></main>"
    assert files["b.html"].text == "<p>B</p>"
    Layouts(env, default="page.html").run(files, context)
    assert files["b.html"].text == "<main>B|<p>B</p></main>"
    assert files["c.json"].text == "{}"


def test_layouts_missing_template_is_fatal(config, context):
    env = make_environment(config)
    files = {"a.html": vf("x", layout="nope.html")}
    with pytest.raises(BuildError) as info:
        Layouts(env).run(files, context)
    assert info.value.path == "a.html"


def test_template_pages_render_with_locals(config, context):
    env = make_environment(config)
    context.set("root_url", "https://x.io")
    files = {
        "about.j2": vf("{{ title }}:{{ events | length }}:{{ root_url }}", title="About"),
        "keep.html": vf("{{ untouched }}"),
    }
    out = TemplatePages(env, locals={"events": [1, 2]}).run(files, context)
    assert list(out) == ["about.html", "keep.html"]
    assert out["about.html"].text == "About:2:https://x.io"
    assert out["keep.html"].text == "{{ untouched }}"


def test_template_pages_syntax_error_is_fatal(config, context):
    env = make_environment(config)
    with pytest.raises(BuildError):
        TemplatePages(env).run({"x.j2": vf("{% if %}")}, context)
