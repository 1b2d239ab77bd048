from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional

from playwright.sync_api import sync_playwright, Browser, ElementHandle, Page, Playwright


DEFAULT_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"

SCROLL_JS = "() => { window.scrollTo(0, document.body.scrollHeight); return document.body.scrollHeight; }"


class NavigationError(Exception):
    """Raised when a page cannot be loaded (no response or HTTP >= 400)."""


class PlaywrightElement:
    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle
        self._tag: Optional[str] = None

    @property
    def tag(self) -> str:
        if self._tag is None:
            self._tag = (self._handle.evaluate("el => el.tagName") or "").lower()
        return self._tag

    def get_attribute(self, name: str) -> Optional[str]:
        return self._handle.get_attribute(name)

    def text(self) -> str:
        return self._handle.text_content() or ""


class PlaywrightPage:
    """RenderedPage over a live Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    def query_all(self, selector: str) -> List[PlaywrightElement]:
        return [PlaywrightElement(h) for h in self._page.query_selector_all(selector)]

    def query_first(self, selector: str) -> Optional[PlaywrightElement]:
        h = self._page.query_selector(selector)
        return PlaywrightElement(h) if h else None

    def content(self) -> str:
        return self._page.content()

    def text(self) -> str:
        return self._page.evaluate("() => document.body ? document.body.textContent || '' : ''") or ""

    def scroll_to_bottom(self) -> int:
        return int(self._page.evaluate(SCROLL_JS) or 0)

    def wait(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def screenshot(self) -> bytes:
        return self._page.screenshot(full_page=True)


class PlaywrightRenderer:
    """Headless Chromium renderer, one browser per worker thread.

    Uses Playwright with security-first settings:
    - Sandbox enabled (no --no-sandbox)
    - Extensions and plugins disabled
    - Optional proxy server passthrough
    """

    def __init__(
        self,
        *,
        timeout_ms: int = 45000,
        headless: bool = True,
        proxy: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.headless = headless
        self.proxy = proxy
        self.user_agent = user_agent or DEFAULT_UA
        self._pw_cm = None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context = None

    def __enter__(self) -> "PlaywrightRenderer":
        self._pw_cm = sync_playwright()
        self._playwright = self._pw_cm.__enter__()
        launch_kwargs = dict(
            headless=self.headless,
            args=[
                '--disable-dev-shm-usage',     # Prevent /dev/shm issues in containers
                '--disable-gpu',                # Disable GPU for headless
                '--disable-extensions',         # No browser extensions
                '--disable-plugins',            # No plugins
                '--no-first-run',               # Skip first run setup
                '--disable-default-apps',       # No default apps
                '--disable-background-timer-throttling',  # Consistent timing
            ],
        )
        if self.proxy:
            launch_kwargs["proxy"] = {"server": self.proxy}
        self._browser = self._playwright.chromium.launch(**launch_kwargs)
        self._context = self._browser.new_context(user_agent=self.user_agent)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            self._browser = None
            self._context = None
            if self._pw_cm is not None:
                self._pw_cm.__exit__(exc_type, exc, tb)
                self._pw_cm = None

    @contextmanager
    def render(self, url: str) -> Iterator[PlaywrightPage]:
        if self._context is None:
            raise RuntimeError("PlaywrightRenderer used outside of its context manager")
        page = self._context.new_page()
        try:
            response = page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            if not response:
                raise NavigationError(f"No response received for {url}")
            if response.status >= 400:
                raise NavigationError(f"HTTP {response.status} for {url}")
            yield PlaywrightPage(page)
        finally:
            page.close()
