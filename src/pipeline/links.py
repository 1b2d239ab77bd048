from __future__ import annotations

"""
Profile link harvesting for listing pages.

Given a rendered listing page, collect absolute profile URLs through an
ordered cascade: profile anchors, anchors again after a lazy scroll,
router-style navigation attributes, embedded JSON-LD item lists and finally
a regex sweep over the raw markup. Every candidate is resolved against the
page URL and must look like a profile (and not like an office page, which
shares the same path root) on the same site.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set
from urllib.parse import urljoin, urlsplit

from .cascade import Strategy, run_all, run_cascade
from .page import RenderedPage
from .text import normalize_url, site_host

TRAILING_PUNCTUATION = ".,;:)]}"


@dataclass(frozen=True)
class Harvest:
    links: List[str] = field(default_factory=list)
    strategy: Optional[str] = None


class LinkHarvester:
    def __init__(
        self,
        *,
        profile_markers: Iterable[str],
        profile_pattern: str,
        office_pattern: str,
        nav_attributes: Iterable[str] = ("data-href", "data-url", "data-link", "routerlink", "ng-href"),
        max_links: int = 500,
        scroll_max_steps: int = 8,
        scroll_wait_ms: int = 800,
    ) -> None:
        self.profile_markers = [m.lower() for m in profile_markers]
        self.profile_re = re.compile(profile_pattern, re.IGNORECASE)
        self.office_re = re.compile(office_pattern, re.IGNORECASE)
        self.nav_attributes = list(nav_attributes)
        self.max_links = int(max_links)
        self.scroll_max_steps = int(scroll_max_steps)
        self.scroll_wait_ms = int(scroll_wait_ms)

        markers_alt = "|".join(re.escape(m) for m in self.profile_markers) or r"(?!)"
        self._abs_url_re = re.compile(
            r"https?://[^\s\"'<>\\]+?(?:" + markers_alt + r")[^\s\"'<>\\]*", re.IGNORECASE
        )
        # Markers carry their own leading slash, so the prefix segment is optional
        self._rel_url_re = re.compile(
            r"[\"']((?:/[^\s\"'<>\\]*?)?(?:" + markers_alt + r")[^\s\"'<>\\]*)[\"']", re.IGNORECASE
        )

        self.strategies: List[Strategy[List[str]]] = [
            Strategy("anchors", self._from_anchors),
            Strategy("lazy_scroll", self._from_anchors_after_scroll),
            Strategy("nav_attributes", self._from_nav_attributes),
            Strategy("json_ld", self._from_structured_data),
            Strategy("markup_regex", self._from_markup),
        ]

    # -------------------------
    # Filtering
    # -------------------------
    def is_profile_url(self, url: str) -> bool:
        try:
            sp = urlsplit(url)
        except ValueError:
            return False
        if sp.scheme not in ("http", "https"):
            return False
        path = sp.path or ""
        # Office pages share the profile root; exclusion wins
        if self.office_re.search(path):
            return False
        return bool(self.profile_re.search(path))

    def _accept(self, base_url: str, candidates: Iterable[str]) -> List[str]:
        base_host = site_host(base_url)
        out: List[str] = []
        seen: Set[str] = set()
        for raw in candidates:
            href = (raw or "").strip()
            if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
                continue
            abs_url = normalize_url(urljoin(base_url, href), keep_query=True)
            if site_host(abs_url) != base_host:
                continue
            if not self.is_profile_url(abs_url):
                continue
            if abs_url not in seen:
                seen.add(abs_url)
                out.append(abs_url)
        return out

    # -------------------------
    # Strategies
    # -------------------------
    def _from_anchors(self, page: RenderedPage) -> List[str]:
        hrefs = []
        for a in page.query_all("a[href]"):
            href = a.get_attribute("href") or ""
            low = href.lower()
            if any(m in low for m in self.profile_markers):
                hrefs.append(href)
        return self._accept(page.url, hrefs)

    def _from_anchors_after_scroll(self, page: RenderedPage) -> List[str]:
        lazy_scroll(page, max_steps=self.scroll_max_steps, wait_ms=self.scroll_wait_ms)
        return self._from_anchors(page)

    def _from_nav_attributes(self, page: RenderedPage) -> List[str]:
        values = []
        for attr in self.nav_attributes:
            for el in page.query_all(f"[{attr}]"):
                v = el.get_attribute(attr)
                if v:
                    values.append(v)
        return self._accept(page.url, values)

    def _from_structured_data(self, page: RenderedPage) -> List[str]:
        urls: List[str] = []
        for script in page.query_all('script[type="application/ld+json"]'):
            raw = script.text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw)
            except ValueError:
                # Malformed blocks contribute nothing
                continue
            urls.extend(collect_json_urls(data))
        return self._accept(page.url, urls)

    def _from_markup(self, page: RenderedPage) -> List[str]:
        html = page.content() or ""
        found = [m.group(0) for m in self._abs_url_re.finditer(html)]
        found.extend(m.group(1) for m in self._rel_url_re.finditer(html))
        # URLs quoted in prose end before trailing punctuation
        return self._accept(page.url, [u.rstrip(TRAILING_PUNCTUATION) for u in found])

    # -------------------------
    # Public API
    # -------------------------
    def harvest(self, page: RenderedPage, exhaustive: bool = False) -> Harvest:
        """Return deduplicated absolute profile URLs, capped at max_links,
        with the name of the strategy that produced them.
        """
        if exhaustive:
            hits = run_all(self.strategies, page)
            merged: List[str] = []
            seen: Set[str] = set()
            for h in hits:
                for u in h.value:
                    if u not in seen:
                        seen.add(u)
                        merged.append(u)
            strategy = ",".join(h.strategy for h in hits) or None
            return Harvest(links=merged[: self.max_links], strategy=strategy)
        hit = run_cascade(self.strategies, page)
        if hit is None:
            return Harvest(links=[], strategy=None)
        return Harvest(links=hit.value[: self.max_links], strategy=hit.strategy)


def lazy_scroll(page: RenderedPage, *, max_steps: int = 8, wait_ms: int = 800) -> int:
    """Scroll to the bottom until the page height stops growing.

    Returns the number of scroll steps performed.
    """
    steps = 0
    last_height = -1
    while steps < max_steps:
        height = page.scroll_to_bottom()
        steps += 1
        page.wait(wait_ms)
        if height <= last_height:
            break
        last_height = height
    return steps


def collect_json_urls(data) -> List[str]:
    """Walk a JSON-LD document and collect every 'url' string.

    Covers ItemList shapes: itemListElement[].url and itemListElement[].item.url.
    """
    out: List[str] = []
    stack = [data]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            u = node.get("url")
            if isinstance(u, str) and u:
                out.append(u)
            for value in reversed(list(node.values())):
                if isinstance(value, (dict, list)):
                    stack.append(value)
        elif isinstance(node, list):
            stack.extend(reversed(node))
    return out
