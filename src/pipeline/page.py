from __future__ import annotations

"""
Rendered page contract used by the harvesting and extraction logic.

The crawl core never touches a browser directly: it queries a RenderedPage
(by CSS selector, attribute, text, raw markup) and may ask it to scroll or
wait. StaticPage implements the contract over selectolax for static HTML;
PlaywrightPage (fetchers/playwright.py) implements it over a live page.
"""

from typing import List, Optional, Protocol

from selectolax.parser import HTMLParser, Node


class PageElement(Protocol):
    @property
    def tag(self) -> str: ...

    def get_attribute(self, name: str) -> Optional[str]: ...

    def text(self) -> str: ...


class RenderedPage(Protocol):
    @property
    def url(self) -> str: ...

    def query_all(self, selector: str) -> List[PageElement]: ...

    def query_first(self, selector: str) -> Optional[PageElement]: ...

    def content(self) -> str: ...

    def text(self) -> str: ...

    def scroll_to_bottom(self) -> int: ...

    def wait(self, ms: int) -> None: ...

    def screenshot(self) -> bytes: ...


class StaticElement:
    """selectolax Node adapter."""

    def __init__(self, node: Node) -> None:
        self._node = node

    @property
    def tag(self) -> str:
        return (self._node.tag or "").lower()

    def get_attribute(self, name: str) -> Optional[str]:
        attrs = self._node.attributes or {}
        if name not in attrs:
            return None
        # Boolean attributes come back as None
        return attrs.get(name) or ""

    def text(self) -> str:
        return self._node.text(separator=" ") or ""


class StaticPage:
    """RenderedPage over already-fetched HTML. Scrolling is a no-op."""

    def __init__(self, url: str, html: str) -> None:
        self._url = url
        self._html = html or ""
        self._parser = HTMLParser(self._html)

    @property
    def url(self) -> str:
        return self._url

    def query_all(self, selector: str) -> List[StaticElement]:
        return [StaticElement(n) for n in self._parser.css(selector)]

    def query_first(self, selector: str) -> Optional[StaticElement]:
        node = self._parser.css_first(selector)
        return StaticElement(node) if node is not None else None

    def content(self) -> str:
        return self._html

    def text(self) -> str:
        root = self._parser.body or self._parser.root
        if root is None:
            return ""
        return root.text(separator=" ") or ""

    def scroll_to_bottom(self) -> int:
        # Static markup never grows; report a constant height
        return len(self._html)

    def wait(self, ms: int) -> None:
        return None

    def screenshot(self) -> bytes:
        return b""
