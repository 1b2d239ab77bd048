"""
Crawl state machine and worker pool.

Three page kinds flow through one shared work queue:

    LISTING  -> LISTING (pagination, numeric seeding)
    LISTING  -> PROFILE (harvested links)
    PROFILE  -> CONTACT_FALLBACK (no email on the profile, "Contact" link found)
    PROFILE / CONTACT_FALLBACK -> terminal (record emitted or dropped)

Handlers are pure decisions over a rendered page: they return a
HandlerOutcome and the worker applies it (enqueue, append to the sink, count
toward the budget). No exception crosses a work item's boundary.
"""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, ContextManager, Dict, List, Optional, Protocol

from .budget import CrawlBudget
from .extractors import ContactExtractor
from .frontier import WorkQueue
from .links import LinkHarvester
from .page import RenderedPage
from .pagination import PaginationResolver
from .text import normalize_phone, normalize_url, split_person_name
from src.config import CrawlConfig
from src.db.record_sink import RecordSink
from src.ops_logger import OpsLogger
from src.schemas import ExtractedContact, PageKind, PartialContext, WorkItem


class PageRenderer(Protocol):
    def render(self, url: str) -> ContextManager[RenderedPage]: ...


@dataclass
class HandlerOutcome:
    new_items: List[WorkItem] = field(default_factory=list)
    records: List[ExtractedContact] = field(default_factory=list)
    links_found: int = 0
    outcome: str = "ok"
    strategy: Optional[str] = None


@dataclass
class CrawlStats:
    processed: Dict[str, int] = field(default_factory=lambda: {k.value: 0 for k in PageKind})
    failed: int = 0
    enqueued: int = 0
    records_emitted: int = 0
    wall_s: float = 0.0


class CrawlStateMachine:
    """Per-page decisions for LISTING, PROFILE and CONTACT_FALLBACK items."""

    def __init__(
        self,
        config: CrawlConfig,
        *,
        budget: CrawlBudget,
        harvester: Optional[LinkHarvester] = None,
        paginator: Optional[PaginationResolver] = None,
        extractor: Optional[ContactExtractor] = None,
        artifact_store=None,
    ) -> None:
        self.config = config
        self.budget = budget
        self.harvester = harvester or LinkHarvester(
            profile_markers=config.profile_markers,
            profile_pattern=config.profile_pattern,
            office_pattern=config.office_pattern,
            nav_attributes=config.selectors.nav_attributes,
            max_links=config.max_links,
            scroll_max_steps=config.scroll_max_steps,
            scroll_wait_ms=config.scroll_wait_ms,
        )
        self.paginator = paginator or PaginationResolver(
            max_pages=config.max_pages,
            page_param=config.page_param,
            city_listing_pattern=config.city_listing_pattern,
            default_seed_pages=config.default_seed_pages,
        )
        self.extractor = extractor or ContactExtractor(config.selectors)
        self.artifact_store = artifact_store

    def seed_items(self) -> List[WorkItem]:
        return [WorkItem(url=u, kind=PageKind.LISTING, page_index=1) for u in self.config.start_urls]

    def handle(self, item: WorkItem, page: RenderedPage) -> HandlerOutcome:
        if item.kind == PageKind.LISTING:
            return self.handle_listing(item, page)
        if item.kind == PageKind.PROFILE:
            return self.handle_profile(item, page)
        return self.handle_contact(item, page)

    # -------------------------
    # LISTING
    # -------------------------
    def handle_listing(self, item: WorkItem, page: RenderedPage) -> HandlerOutcome:
        if self.budget.stop_requested:
            return HandlerOutcome(outcome="skipped_budget")

        harvest = self.harvester.harvest(page)
        links = harvest.links
        out = HandlerOutcome(links_found=len(links), strategy=harvest.strategy)

        if self.budget.claim_first_listing() and not links:
            self._dump_debug_artifacts(page)

        out.new_items.extend(WorkItem(url=u, kind=PageKind.PROFILE) for u in links)

        nxt = self.paginator.next_item(page, item)
        if nxt is not None:
            out.new_items.append(nxt)
        out.new_items.extend(self.paginator.seed_items(page, self.budget))
        out.outcome = "listing" if links else "listing_empty"
        return out

    def _dump_debug_artifacts(self, page: RenderedPage) -> None:
        if self.artifact_store is None:
            return
        print(f"  ⚠️  First listing page yielded 0 profile links: {page.url}", file=sys.stderr)
        try:
            shot = page.screenshot()
            if shot:
                self.artifact_store.put("debug_listing.png", shot, "image/png")
            self.artifact_store.put("debug_listing.html", (page.content() or "").encode("utf-8"), "text/html; charset=utf-8")
        except Exception as e:
            # Diagnostics only; never fail the listing over them
            print(f"  ⚠️  Debug snapshot failed: {e}", file=sys.stderr)

    # -------------------------
    # PROFILE
    # -------------------------
    def handle_profile(self, item: WorkItem, page: RenderedPage) -> HandlerOutcome:
        fields = self.extractor.extract(page)
        phone = normalize_phone(fields.phone)

        if fields.email:
            first, last = split_person_name(fields.name)
            contact = ExtractedContact(
                email=fields.email,
                first_name=first,
                last_name=last,
                phone=phone,
                source_profile_url=page.url,
                source_contact_url=page.url,
            )
            return HandlerOutcome(records=[contact], outcome="record", strategy=fields.email_strategy)

        contact_url = self.extractor.find_contact_link(page)
        if not contact_url or normalize_url(contact_url) == normalize_url(page.url):
            return HandlerOutcome(outcome="no_email")

        fallback = WorkItem(
            url=contact_url,
            kind=PageKind.CONTACT_FALLBACK,
            page_index=item.page_index,
            partial_context=PartialContext(name=fields.name, phone=phone, profile_url=page.url),
        )
        return HandlerOutcome(new_items=[fallback], outcome="contact_fallback")

    # -------------------------
    # CONTACT_FALLBACK
    # -------------------------
    def handle_contact(self, item: WorkItem, page: RenderedPage) -> HandlerOutcome:
        ctx = item.partial_context
        fields = self.extractor.extract(page)
        if not fields.email:
            return HandlerOutcome(outcome="no_email")
        first, last = split_person_name(ctx.name)
        contact = ExtractedContact(
            email=fields.email,
            first_name=first,
            last_name=last,
            phone=normalize_phone(fields.phone),
            source_profile_url=ctx.profile_url,
            source_contact_url=page.url,
        )
        return HandlerOutcome(records=[contact], outcome="record", strategy=fields.email_strategy)


class Crawler:
    """Fixed-size worker pool draining the shared work queue.

    Each worker thread owns one renderer (one browser) for its lifetime.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        renderer_factory: Callable[[], ContextManager[PageRenderer]],
        sink: RecordSink,
        budget: Optional[CrawlBudget] = None,
        machine: Optional[CrawlStateMachine] = None,
        queue: Optional[WorkQueue] = None,
        ops_logger: Optional[OpsLogger] = None,
        artifact_store=None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.renderer_factory = renderer_factory
        self.sink = sink
        self.budget = budget or CrawlBudget(config.max_records, seed_scope=config.seed_scope)
        self.machine = machine or CrawlStateMachine(config, budget=self.budget, artifact_store=artifact_store)
        self.queue = queue or WorkQueue()
        self.ops_logger = ops_logger
        self.sleep = sleep
        self.stats = CrawlStats()
        self._stats_lock = threading.Lock()
        self._workers: List[threading.Thread] = []

    def _delay_for(self, kind: PageKind) -> float:
        if kind == PageKind.PROFILE:
            return self.config.profile_delay_ms / 1000.0
        if kind == PageKind.CONTACT_FALLBACK:
            return self.config.contact_delay_ms / 1000.0
        return 0.0

    def _enqueue(self, items: List[WorkItem]) -> int:
        added = 0
        for it in items:
            if self.queue.enqueue(it):
                added += 1
        with self._stats_lock:
            self.stats.enqueued += added
        return added

    def apply(self, item: WorkItem, outcome: HandlerOutcome) -> int:
        """Emit records and enqueue follow-up work; returns items enqueued."""
        for rec in outcome.records:
            self.sink.append(rec)
            total = self.budget.record_emitted()
            print(f"  ✅ Record #{total}: {rec.email}")
        with self._stats_lock:
            self.stats.records_emitted += len(outcome.records)
        # LISTING-originated work stops once the budget latched
        if item.kind == PageKind.LISTING and self.budget.stop_requested:
            return 0
        return self._enqueue(outcome.new_items)

    def process(self, item: WorkItem, renderer: PageRenderer, worker: Optional[int] = None) -> HandlerOutcome:
        t0 = time.perf_counter()
        try:
            with renderer.render(item.url) as page:
                outcome = self.machine.handle(item, page)
            enqueued = self.apply(item, outcome)
        except Exception as e:
            print(f"Request failed: {item.url}: {e}", file=sys.stderr)
            with self._stats_lock:
                self.stats.failed += 1
            self._log_item(item, "failed", t0, worker, error=str(e))
            return HandlerOutcome(outcome="failed")
        with self._stats_lock:
            self.stats.processed[item.kind.value] += 1
        self._log_item(
            item,
            outcome.outcome,
            t0,
            worker,
            links=outcome.links_found,
            records=len(outcome.records),
            enqueued=enqueued,
            strategy=outcome.strategy,
            page_index=item.page_index,
        )
        delay = self._delay_for(item.kind)
        if delay > 0:
            self.sleep(delay)
        return outcome

    def _log_item(self, item: WorkItem, outcome: str, t0: float, worker: Optional[int], **extra) -> None:
        if self.ops_logger is None:
            return
        self.ops_logger.item(
            url=item.url,
            kind=item.kind.value,
            outcome=outcome,
            duration_s=time.perf_counter() - t0,
            worker=worker,
            **extra,
        )

    def _worker(self, wid: int) -> None:
        try:
            with self.renderer_factory() as renderer:
                while True:
                    item = self.queue.get()
                    if item is None:
                        return
                    try:
                        print(f"➡️  [{wid}] {item.kind.value} p{item.page_index}: {item.url}")
                        self.process(item, renderer, worker=wid)
                    finally:
                        self.queue.task_done()
        except Exception as e:
            print(f"[W{wid}] renderer error, worker stopped: {e}", file=sys.stderr)

    def run(self) -> CrawlStats:
        t0 = time.perf_counter()
        self._enqueue(self.machine.seed_items())
        self._workers = [
            threading.Thread(target=self._worker, args=(i,), name=f"crawl-worker-{i}", daemon=True)
            for i in range(self.config.max_concurrency)
        ]
        for w in self._workers:
            w.start()
        for w in self._workers:
            w.join()
        self.stats.wall_s = time.perf_counter() - t0
        return self.stats

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Close the queue and wait for in-flight items to finish.

        Workers finish the page they are on and then exit. Returns True when
        every worker has exited within the timeout.
        """
        self.budget.request_stop()
        self.queue.close()
        deadline = None if timeout is None else time.monotonic() + timeout
        for w in self._workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            w.join(remaining)
        alive = [w.name for w in self._workers if w.is_alive()]
        if alive:
            print(f"  ⚠️  Workers still running after stop: {', '.join(alive)}", file=sys.stderr)
        return not alive
