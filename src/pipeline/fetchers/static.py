from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import httpx

from ..page import StaticPage
from .playwright import NavigationError


DEFAULT_UA = "AgentRoster-StaticFetcher/0.1 (+https://example.com)"


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    mime: str | None
    html: str | None


class StaticRenderer:
    """Static HTML renderer for server-rendered listing sites.

    - Uses httpx for network IO
    - Parses with selectolax (StaticPage)
    - Does NOT execute JavaScript, so lazy scroll is a no-op
    """

    def __init__(
        self,
        *,
        timeout_s: float = 12.0,
        user_agent: str | None = None,
        proxy: str | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent or DEFAULT_UA
        self.proxy = proxy
        self._client: httpx.Client | None = None

    def __enter__(self) -> "StaticRenderer":
        kwargs = dict(timeout=self.timeout_s, headers={"User-Agent": self.user_agent}, follow_redirects=True)
        if self.proxy:
            kwargs["proxy"] = self.proxy
        self._client = httpx.Client(**kwargs)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def fetch(self, url: str) -> FetchResult:
        if self._client is None:
            raise RuntimeError("StaticRenderer used outside of its context manager")
        resp = self._client.get(url)
        mime = resp.headers.get("Content-Type")
        mime_main = None
        if mime:
            mime_main = mime.split(";")[0].strip().lower()
        html_text = resp.text if mime_main in ("text/html", "application/xhtml+xml") else None
        return FetchResult(
            url=str(resp.url),
            status_code=resp.status_code,
            mime=mime_main,
            html=html_text,
        )

    @contextmanager
    def render(self, url: str) -> Iterator[StaticPage]:
        res = self.fetch(url)
        if res.status_code >= 400:
            raise NavigationError(f"HTTP {res.status_code} for {url}")
        if res.html is None:
            raise NavigationError(f"Non-HTML response ({res.mime}) for {url}")
        yield StaticPage(res.url, res.html)
