from __future__ import annotations

import json
from pathlib import Path

import pytest

from sitepipe.config import SiteConfig, build_config
from sitepipe.pipeline import BuildContext

from helpers import write

DOCS_LAYOUT = """<html><body>
<nav>{% for child in navs.header.children %}<a href="{{ child.path }}">{{ child.name }}</a>{% endfor %}</nav>
<div class="version">{{ docsVersion }}</div>
<main>{{ contents }}</main>
</body></html>
"""

CATEGORY_LAYOUT = """<h1>{{ tag }}</h1>
<ul>{% for post in posts %}<li>{{ post.title }}</li>{% endfor %}</ul>
"""


@pytest.fixture
def project(tmp_path: Path) -> Path:
    write(tmp_path / "layouts" / "docs.html", DOCS_LAYOUT)
    write(tmp_path / "layouts" / "blog-category.html", CATEGORY_LAYOUT)
    write(tmp_path / "layouts" / "page.html", "<main>{{ title }}|{{ contents }}</main>")
    write(
        tmp_path / "env.json",
        json.dumps({"production": {"root_url": "https://example.com"}, "development": {"root_url": "http://localhost:3000"}}),
    )
    return tmp_path


@pytest.fixture
def config(project: Path) -> SiteConfig:
    return build_config(project, env=None, docs_versions=("1.0", "2.0"), current_version="2.0")


@pytest.fixture
def context(config: SiteConfig) -> BuildContext:
    return BuildContext(config)
