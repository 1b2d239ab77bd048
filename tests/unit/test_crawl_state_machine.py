from unittest.mock import Mock

from src.config import CrawlConfig
from src.pipeline.budget import CrawlBudget
from src.pipeline.crawl import CrawlStateMachine
from src.pipeline.page import StaticPage
from src.schemas import PageKind, PartialContext, WorkItem

CITY = "https://www.example-realty.com/fl/jacksonville/agents"
PROFILE = "https://www.example-realty.com/fl/jacksonville/agents/jane-doe/aid-1"
CONTACT = "https://www.example-realty.com/fl/jacksonville/agents/jane-doe/contact"


def make_machine(**cfg) -> CrawlStateMachine:
    config = CrawlConfig(scroll_wait_ms=0, **cfg)
    return CrawlStateMachine(config, budget=CrawlBudget(config.max_records, seed_scope=config.seed_scope))


def profile_item() -> WorkItem:
    return WorkItem(url=PROFILE, kind=PageKind.PROFILE)


def test_profile_with_email_emits_record_directly():
    html = """
    <h1 data-testid="office-name">Jane Q. Public, Realtor®</h1>
    <a href="tel:904-555-1234">Call</a>
    <a href="mailto:Jane@Example-Realty.com">Email</a>
    <a href="/fl/jacksonville/agents/jane-doe/contact">Contact</a>
    """
    out = make_machine().handle(profile_item(), StaticPage(PROFILE, html))
    assert out.new_items == []
    assert len(out.records) == 1
    rec = out.records[0]
    assert rec.email == "jane@example-realty.com"
    assert (rec.first_name, rec.last_name) == ("Jane Q.", "Public")
    assert rec.phone == "+19045551234"
    assert rec.source_profile_url == rec.source_contact_url == PROFILE
    assert out.strategy == "mailto_link"


def test_profile_without_email_or_contact_affordance_yields_nothing():
    html = "<h1>Jane Doe</h1><p>(904) 555-1234</p>"
    out = make_machine().handle(profile_item(), StaticPage(PROFILE, html))
    assert out.records == []
    assert out.new_items == []
    assert out.outcome == "no_email"


def test_profile_with_contact_anchor_yields_one_fallback_item_and_no_record():
    html = '<h1>Jane Doe</h1><p>(904) 555-1234</p><a href="contact">Contact Jane</a>'
    out = make_machine().handle(profile_item(), StaticPage(PROFILE, html))
    assert out.records == []
    assert len(out.new_items) == 1
    fb = out.new_items[0]
    assert fb.kind == PageKind.CONTACT_FALLBACK
    assert fb.url == CONTACT
    assert fb.partial_context == PartialContext(name="Jane Doe", phone="+19045551234", profile_url=PROFILE)
    assert out.outcome == "contact_fallback"


def test_contact_link_pointing_at_the_profile_itself_is_not_followed():
    html = f'<h1>Jane Doe</h1><a href="{PROFILE}?tab=contact">Contact</a>'
    out = make_machine().handle(profile_item(), StaticPage(PROFILE, html))
    assert out.new_items == [] and out.records == []


def contact_item(phone: str = "+19045551234") -> WorkItem:
    return WorkItem(
        url=CONTACT,
        kind=PageKind.CONTACT_FALLBACK,
        partial_context=PartialContext(name="Mary Jane Smith Team", phone=phone, profile_url=PROFILE),
    )


def test_contact_fallback_combines_carried_name_with_new_email():
    html = '<div data-testid="emailDiv"><a data-testid="emailLink" href="mailto:MJ@Example.com">Email</a></div><a href="tel:(904) 555-0000">c</a>'
    out = make_machine().handle(contact_item(), StaticPage(CONTACT, html))
    assert len(out.records) == 1
    rec = out.records[0]
    assert rec.email == "mj@example.com"
    assert (rec.first_name, rec.last_name) == ("Mary Jane", "Smith")
    assert rec.phone == "+19045550000"
    assert rec.source_profile_url == PROFILE
    assert rec.source_contact_url == CONTACT
    assert out.strategy == "email_block"
    assert out.new_items == []


def test_contact_fallback_uses_only_contact_page_phone():
    html = '<a href="mailto:mj@example.com">Email</a>'
    out = make_machine().handle(contact_item(), StaticPage(CONTACT, html))
    # The profile's phone is not carried into the record
    assert out.records[0].phone == ""
    assert out.records[0].first_name == "Mary Jane"


def test_contact_fallback_without_email_emits_nothing():
    out = make_machine().handle(contact_item(), StaticPage(CONTACT, "<form>Send a message</form>"))
    assert out.records == [] and out.new_items == []


def test_listing_enqueues_profiles_next_page_and_seeds_once():
    html = """
    <a href="/fl/jacksonville/agents/jane-doe/aid-1">Jane</a>
    <a href="/fl/jacksonville/agents/john-roe/aid-2">John</a>
    <a href="/real-estate-agents/office/southside">Office</a>
    <a rel="next" href="?page=2">Next</a>
    <a href="?page=4">4</a>
    """
    machine = make_machine()
    item = WorkItem(url=CITY, kind=PageKind.LISTING)
    out = machine.handle(item, StaticPage(CITY, html))
    profiles = [i for i in out.new_items if i.kind == PageKind.PROFILE]
    listings = [i for i in out.new_items if i.kind == PageKind.LISTING]
    assert {p.url for p in profiles} == {
        "https://www.example-realty.com/fl/jacksonville/agents/jane-doe/aid-1",
        "https://www.example-realty.com/fl/jacksonville/agents/john-roe/aid-2",
    }
    # next-link page 2 plus seeded pages 2..4
    assert sorted(i.page_index for i in listings) == [2, 2, 3, 4]
    assert out.links_found == 2
    assert out.strategy == "anchors"

    again = machine.handle(item, StaticPage(CITY, html))
    assert sorted(i.page_index for i in again.new_items if i.kind == PageKind.LISTING) == [2]


def test_listing_is_noop_once_budget_stopped():
    machine = make_machine(max_records=1)
    machine.budget.record_emitted()
    out = machine.handle(WorkItem(url=CITY, kind=PageKind.LISTING), StaticPage(CITY, '<a href="/agents/x">x</a>'))
    assert out.new_items == []
    assert out.outcome == "skipped_budget"


def test_first_empty_listing_dumps_debug_artifacts_once():
    store = Mock()
    config = CrawlConfig(scroll_wait_ms=0)
    machine = CrawlStateMachine(config, budget=CrawlBudget(), artifact_store=store)
    empty = StaticPage(CITY, "<html><body>blocked</body></html>")
    machine.handle(WorkItem(url=CITY, kind=PageKind.LISTING), empty)
    machine.handle(WorkItem(url=CITY + "?page=2", kind=PageKind.LISTING, page_index=2), empty)
    names = [c.args[0] for c in store.put.call_args_list]
    # Static pages have no screenshot bytes; only the markup snapshot is stored
    assert names == ["debug_listing.html"]
    assert store.put.call_args_list[0].args[2].startswith("text/html")


def test_debug_artifacts_not_written_when_first_listing_has_links():
    store = Mock()
    machine = CrawlStateMachine(CrawlConfig(scroll_wait_ms=0), budget=CrawlBudget(), artifact_store=store)
    machine.handle(WorkItem(url=CITY, kind=PageKind.LISTING), StaticPage(CITY, '<a href="/agents/jane">J</a>'))
    machine.handle(WorkItem(url=CITY + "?page=2", kind=PageKind.LISTING, page_index=2), StaticPage(CITY, "<p></p>"))
    store.put.assert_not_called()


def test_seed_items_are_listing_page_one():
    machine = make_machine(start_urls=[CITY, "https://www.example-realty.com/fl/miami/agents"])
    seeds = machine.seed_items()
    assert [s.kind for s in seeds] == [PageKind.LISTING, PageKind.LISTING]
    assert all(s.page_index == 1 for s in seeds)
