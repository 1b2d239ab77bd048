from contextlib import contextmanager

import pytest

from src.pipeline.fetchers.playwright import NavigationError
from src.pipeline.page import StaticPage


class FakeRenderer:
    """Serves canned HTML by URL; unknown URLs fail like an HTTP 404."""

    def __init__(self, pages):
        self.pages = pages
        self.visited = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    @contextmanager
    def render(self, url):
        self.visited.append(url)
        html = self.pages.get(url)
        if html is None:
            raise NavigationError(f"HTTP 404 for {url}")
        yield StaticPage(url, html)


@pytest.fixture
def fake_renderer_factory():
    """Build a renderer factory over a {url: html} mapping.

    Every renderer the factory creates is recorded on factory.renderers.
    """

    def make(pages):
        def factory():
            r = FakeRenderer(pages)
            factory.renderers.append(r)
            return r

        factory.renderers = []
        return factory

    return make
