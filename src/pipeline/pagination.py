from __future__ import annotations

"""
Listing pagination.

Two independent mechanisms:
- next-link discovery, run on every listing page (rel=next, aria-label,
  anchor text, then the smallest page number above the current one)
- bulk numeric seeding, a one-shot batch of page=2..N listing items for
  city-level listing URLs, claimed through CrawlBudget
"""

import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from .budget import CrawlBudget
from .cascade import Strategy, run_cascade
from .page import PageElement, RenderedPage
from .text import normalize_url, normalize_whitespace, site_host
from src.schemas import PageKind, WorkItem

NEXT_WORD_RE = re.compile(r"\bnext\b", re.IGNORECASE)


@dataclass(frozen=True)
class NextPage:
    url: str
    page_index: int
    strategy: str


def page_number(url: str, param: str = "page") -> Optional[int]:
    try:
        query = urlsplit(url).query
    except ValueError:
        return None
    for k, v in parse_qsl(query, keep_blank_values=True):
        if k == param:
            try:
                n = int(v)
            except ValueError:
                return None
            return n if n >= 1 else None
    return None


def with_page_number(url: str, n: int, param: str = "page") -> str:
    sp = urlsplit(url)
    params = [(k, v) for k, v in parse_qsl(sp.query, keep_blank_values=True) if k != param]
    params.append((param, str(n)))
    return urlunsplit(sp._replace(query=urlencode(params), fragment=""))


def listing_root(url: str) -> str:
    """Listing identity used for per-root seeding: URI without query."""
    return normalize_url(url)


class PaginationResolver:
    def __init__(
        self,
        *,
        max_pages: int = 200,
        page_param: str = "page",
        city_listing_pattern: str = r"^/[a-z]{2}/[^/]+/agents/?$",
        default_seed_pages: int = 10,
    ) -> None:
        self.max_pages = int(max_pages)
        self.page_param = page_param
        self.city_listing_re = re.compile(city_listing_pattern, re.IGNORECASE)
        self.default_seed_pages = int(default_seed_pages)
        self._page_in_markup_re = re.compile(r"[?&](?:amp;)?" + re.escape(page_param) + r"=(\d+)")

    # -------------------------
    # Next-link discovery
    # -------------------------
    def _candidates(self, page: RenderedPage) -> List[PageElement]:
        return page.query_all("a[href]")

    def _usable(self, page: RenderedPage, href: Optional[str]) -> Optional[str]:
        href = (href or "").strip()
        if not href or href.startswith(("#", "javascript:")):
            return None
        abs_url = urljoin(page.url, href)
        if not abs_url.startswith(("http://", "https://")):
            return None
        if site_host(abs_url) != site_host(page.url):
            return None
        if normalize_url(abs_url, keep_query=True) == normalize_url(page.url, keep_query=True):
            return None
        return abs_url

    def _first_matching(self, page: RenderedPage, predicate) -> Optional[str]:
        for a in self._candidates(page):
            if predicate(a):
                u = self._usable(page, a.get_attribute("href"))
                if u:
                    return u
        return None

    def _by_rel(self, page: RenderedPage) -> Optional[str]:
        return self._first_matching(
            page, lambda a: "next" in (a.get_attribute("rel") or "").lower().split()
        )

    def _by_aria_label(self, page: RenderedPage) -> Optional[str]:
        return self._first_matching(
            page, lambda a: bool(NEXT_WORD_RE.search(a.get_attribute("aria-label") or ""))
        )

    def _by_text(self, page: RenderedPage) -> Optional[str]:
        return self._first_matching(
            page, lambda a: bool(NEXT_WORD_RE.search(normalize_whitespace(a.text())))
        )

    def _by_page_number(self, page: RenderedPage, current: int) -> Optional[str]:
        best_url, best_n = None, None
        for a in self._candidates(page):
            u = self._usable(page, a.get_attribute("href"))
            if not u:
                continue
            n = page_number(u, self.page_param)
            if n is None or n <= current:
                continue
            if best_n is None or n < best_n:
                best_url, best_n = u, n
        return best_url

    def find_next(self, page: RenderedPage, current_index: int) -> Optional[NextPage]:
        strategies = [
            Strategy("rel_next", self._by_rel),
            Strategy("aria_label", self._by_aria_label),
            Strategy("anchor_text", self._by_text),
            Strategy("page_number", lambda p: self._by_page_number(p, current_index)),
        ]
        hit = run_cascade(strategies, page)
        if not hit:
            return None
        n = page_number(hit.value, self.page_param)
        index = n if n is not None else current_index + 1
        return NextPage(url=hit.value, page_index=index, strategy=hit.strategy)

    def next_item(self, page: RenderedPage, item: WorkItem) -> Optional[WorkItem]:
        nxt = self.find_next(page, item.page_index)
        if nxt is None or nxt.page_index > self.max_pages:
            return None
        return WorkItem(url=nxt.url, kind=PageKind.LISTING, page_index=nxt.page_index)

    # -------------------------
    # Bulk numeric seeding
    # -------------------------
    def is_city_listing(self, url: str) -> bool:
        try:
            path = urlsplit(url).path or "/"
        except ValueError:
            return False
        return bool(self.city_listing_re.search(path))

    def max_page_on(self, page: RenderedPage) -> Optional[int]:
        numbers: List[int] = []
        for a in self._candidates(page):
            href = a.get_attribute("href") or ""
            n = page_number(urljoin(page.url, href), self.page_param)
            if n is not None:
                numbers.append(n)
        for m in self._page_in_markup_re.finditer(page.content() or ""):
            numbers.append(int(m.group(1)))
        return max(numbers) if numbers else None

    def seed_items(self, page: RenderedPage, budget: CrawlBudget) -> List[WorkItem]:
        """Build LISTING items for pages 2..N once per run (or per root)."""
        if not self.is_city_listing(page.url):
            return []
        if not budget.claim_numeric_seeding(listing_root(page.url)):
            return []
        observed = self.max_page_on(page)
        last = min(observed if observed is not None else self.default_seed_pages, self.max_pages)
        return [
            WorkItem(url=with_page_number(page.url, n, self.page_param), kind=PageKind.LISTING, page_index=n)
            for n in range(2, last + 1)
        ]
