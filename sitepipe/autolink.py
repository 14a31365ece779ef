from __future__ import annotations

import xml.etree.ElementTree as etree

from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor

RE_BARE_URL = r"(?<![\w/\"'=])(?P<url>(?:https?://|www\.)[^\s<>\"']*[^\s<>\"'.,:;!?)\]])"


class BareUrlProcessor(InlineProcessor):
    ANCESTOR_EXCLUDES = ("a",)

    def handleMatch(self, m, data):
        url = m.group("url")
        href = url if url.startswith(("http://", "https://")) else f"http://{url}"
        el = etree.Element("a")
        el.set("href", href)
        el.text = url
        return el, m.start(0), m.end(0)


class BareUrlExtension(Extension):
    """Link bare ``http(s)://`` and ``www.`` URLs the way GitHub does."""

    def extendMarkdown(self, md):
        md.inlinePatterns.register(BareUrlProcessor(RE_BARE_URL, md), "bare_url", 105)


def makeExtension(**kwargs):
    return BareUrlExtension(**kwargs)
