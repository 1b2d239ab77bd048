import threading
from unittest.mock import Mock

from src.config import CrawlConfig
from src.pipeline.links import LinkHarvester, collect_json_urls, lazy_scroll
from src.pipeline.page import StaticPage

BASE = "https://www.example-realty.com/fl/jacksonville/agents"


def make_harvester(**overrides) -> LinkHarvester:
    cfg = CrawlConfig()
    kwargs = dict(
        profile_markers=cfg.profile_markers,
        profile_pattern=cfg.profile_pattern,
        office_pattern=cfg.office_pattern,
        nav_attributes=cfg.selectors.nav_attributes,
        scroll_wait_ms=0,
    )
    kwargs.update(overrides)
    return LinkHarvester(**kwargs)


def test_anchors_resolved_relative_to_base():
    html = """
    <html><body>
      <a href="/fl/jacksonville/agents/jane-doe/aid-1">Jane</a>
      <a href="https://www.example-realty.com/fl/jacksonville/agents/john-roe/aid-2?src=list">John</a>
      <a href="/about">About</a>
    </body></html>
    """
    h = make_harvester()
    result = h.harvest(StaticPage(BASE, html))
    links = result.links
    assert links == [
        "https://www.example-realty.com/fl/jacksonville/agents/jane-doe/aid-1",
        "https://www.example-realty.com/fl/jacksonville/agents/john-roe/aid-2?src=list",
    ]
    assert result.strategy == "anchors"


def test_office_subpath_excluded_even_though_it_matches_profile_marker():
    html = """
    <a href="/real-estate-agents/office/jacksonville-southside">Office</a>
    <a href="/real-estate-agents/jane-doe">Jane</a>
    """
    h = make_harvester()
    assert not h.is_profile_url("https://www.example-realty.com/real-estate-agents/office/jacksonville-southside")
    assert h.harvest(StaticPage(BASE, html)).links == ["https://www.example-realty.com/real-estate-agents/jane-doe"]


def test_offsite_and_listing_root_links_are_filtered():
    html = """
    <a href="https://other-site.com/agents/jane-doe">Elsewhere</a>
    <a href="/fl/jacksonville/agents/">Listing root</a>
    <a href="/fl/jacksonville/agents?page=2">Page 2</a>
    """
    assert make_harvester().harvest(StaticPage(BASE, html)).links == []


def test_duplicates_removed_and_capped():
    anchors = "".join(f'<a href="/agents/person-{i}">P{i}</a><a href="/agents/person-{i}">again</a>' for i in range(10))
    links = make_harvester(max_links=3).harvest(StaticPage(BASE, anchors)).links
    assert len(links) == 3
    assert len(set(links)) == 3


def test_nav_attributes_used_when_no_anchors():
    html = """
    <div data-href="/agents/jane-doe">Jane</div>
    <button routerlink="/agents/john-roe">John</button>
    """
    h = make_harvester()
    result = h.harvest(StaticPage(BASE, html))
    links = result.links
    assert set(links) == {
        "https://www.example-realty.com/agents/jane-doe",
        "https://www.example-realty.com/agents/john-roe",
    }
    assert result.strategy == "nav_attributes"


def test_json_ld_item_list_urls():
    html = """
    <script type="application/ld+json">
    {"@type": "ItemList", "itemListElement": [
        {"@type": "ListItem", "position": 1, "url": "https://www.example-realty.com/agents/jane-doe"},
        {"@type": "ListItem", "position": 2, "item": {"url": "/agents/john-roe"}}
    ]}
    </script>
    """
    h = make_harvester()
    result = h.harvest(StaticPage(BASE, html))
    links = result.links
    assert set(links) == {
        "https://www.example-realty.com/agents/jane-doe",
        "https://www.example-realty.com/agents/john-roe",
    }
    assert result.strategy == "json_ld"


def test_malformed_json_ld_is_ignored_and_regex_fallback_runs():
    html = """
    <script type="application/ld+json">{ not json </script>
    <script>window.__DATA__ = {"agents": ["/agents/jane-doe", "https://www.example-realty.com/agents/john-roe"]}</script>
    """
    h = make_harvester()
    result = h.harvest(StaticPage(BASE, html))
    links = result.links
    assert set(links) == {
        "https://www.example-realty.com/agents/jane-doe",
        "https://www.example-realty.com/agents/john-roe",
    }
    assert result.strategy == "markup_regex"


def test_markup_regex_finds_root_relative_paths_starting_with_marker():
    html = """
    <script>var cards = ['/real-estate-agents/ann-lee', "/agents/bo-diaz", "/fl/jacksonville/agents/cy-park"];</script>
    """
    result = make_harvester().harvest(StaticPage(BASE, html))
    assert result.strategy == "markup_regex"
    assert set(result.links) == {
        "https://www.example-realty.com/real-estate-agents/ann-lee",
        "https://www.example-realty.com/agents/bo-diaz",
        "https://www.example-realty.com/fl/jacksonville/agents/cy-park",
    }


def test_markup_regex_drops_trailing_prose_punctuation():
    html = """
    <p>Meet https://www.example-realty.com/agents/jane-doe.</p>
    <p>(see https://www.example-realty.com/agents/john-roe)</p>
    <p>Also https://www.example-realty.com/agents/ann-lee, today</p>
    """
    links = make_harvester().harvest(StaticPage(BASE, html)).links
    assert links == [
        "https://www.example-realty.com/agents/jane-doe",
        "https://www.example-realty.com/agents/john-roe",
        "https://www.example-realty.com/agents/ann-lee",
    ]


def test_concurrent_harvests_report_their_own_strategy():
    h = make_harvester()
    markup = {
        "anchors": '<a href="/agents/jane-doe">Jane</a>',
        "json_ld": '<script type="application/ld+json">{"url": "/agents/john-roe"}</script>',
    }
    barrier = threading.Barrier(8)
    results = []

    def work(expected):
        barrier.wait()
        for _ in range(20):
            results.append((expected, h.harvest(StaticPage(BASE, markup[expected])).strategy))

    threads = [threading.Thread(target=work, args=(name,)) for name in list(markup) * 4]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(results) == 160
    assert all(expected == got for expected, got in results)


def test_nothing_found_returns_empty_list():
    h = make_harvester()
    result = h.harvest(StaticPage(BASE, "<html><body><p>No agents</p></body></html>"))
    assert result.links == []
    assert result.strategy is None


def test_exhaustive_collects_from_every_strategy():
    html = """
    <a href="/agents/jane-doe">Jane</a>
    <div data-url="/agents/john-roe"></div>
    """
    links = make_harvester().harvest(StaticPage(BASE, html), exhaustive=True).links
    assert set(links) == {
        "https://www.example-realty.com/agents/jane-doe",
        "https://www.example-realty.com/agents/john-roe",
    }


def test_lazy_scroll_stops_when_height_stops_growing():
    page = Mock()
    page.scroll_to_bottom.side_effect = [1000, 2000, 2000, 3000]
    steps = lazy_scroll(page, max_steps=10, wait_ms=0)
    assert steps == 3
    assert page.wait.call_count == 3


def test_lazy_scroll_respects_step_cap():
    page = Mock()
    page.scroll_to_bottom.side_effect = [i * 1000 for i in range(1, 100)]
    assert lazy_scroll(page, max_steps=4, wait_ms=0) == 4


def test_lazy_scroll_strategy_picks_up_late_anchors():
    class GrowingPage(StaticPage):
        def __init__(self):
            super().__init__(BASE, "<html><body></body></html>")
            self.scrolled = False

        def scroll_to_bottom(self):
            if not self.scrolled:
                self.scrolled = True
                self._parser = type(self._parser)('<a href="/agents/late-loader">Late</a>')
            return 100

    h = make_harvester()
    result = h.harvest(GrowingPage())
    links = result.links
    assert links == ["https://www.example-realty.com/agents/late-loader"]
    assert result.strategy == "lazy_scroll"


def test_collect_json_urls_nested():
    data = [{"url": "/a"}, {"itemListElement": [{"item": {"url": "/b"}}, {"name": "x"}]}]
    assert collect_json_urls(data) == ["/a", "/b"]
