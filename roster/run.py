"""
Agent Roster Export - CLI Runner

Usage:
  python -m roster.run \
    --config config/example.yaml \
    --out ./out

Seed from a file instead of the config's start_urls:
  python -m roster.run --input start_urls.txt --config config/example.yaml --out ./out

Dry run (validate only):
  python -m roster.run --config config/example.yaml --out ./out --dry-run

Exit codes:
  0 - success (the export is always written, even with zero rows)
  1 - config error (file missing, invalid YAML or invalid values)
  2 - input error (input file missing or without usable URLs)
  3 - output error (output directory not writable)
"""
from __future__ import annotations

import argparse
import platform
import sys
import time
from pathlib import Path
from typing import List

import psutil

from src.config import ConfigError, CrawlConfig, load_config
from src.db.kv_store import FileKeyValueStore
from src.db.record_sink import MemoryRecordSink, SqliteRecordSink
from src.ops_logger import OpsLogger
from src.pipeline.budget import CrawlBudget
from src.pipeline.crawl import Crawler
from src.pipeline.export import ContactExporter
from src.pipeline.fetchers.playwright import PlaywrightRenderer
from src.pipeline.fetchers.static import StaticRenderer


def validate_input(input_path: Path) -> None:
    if not input_path.exists() or not input_path.is_file():
        print(f"Input error: file not found: {input_path}", file=sys.stderr)
        sys.exit(2)


def validate_config(config_path: Path | None) -> CrawlConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(1)


def ensure_out_dir(out_dir: Path) -> None:
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        # sanity check: can we write here?
        test_file = out_dir / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except OSError as e:
        print(f"Output error: cannot write to {out_dir}: {e}", file=sys.stderr)
        sys.exit(3)


def read_input_urls(input_path: Path) -> List[str]:
    urls: List[str] = []
    for line in input_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        # Bare domains/paths get https://
        if s.startswith("http://") or s.startswith("https://"):
            urls.append(s)
        elif "." in s:
            urls.append(f"https://{s}")
    return urls


def apply_overrides(cfg: CrawlConfig, args: argparse.Namespace, start_urls: List[str]) -> CrawlConfig:
    updates = {}
    if start_urls:
        updates["start_urls"] = start_urls
    if args.max_pages is not None:
        updates["max_pages"] = args.max_pages
    if args.max_concurrency is not None:
        updates["max_concurrency"] = args.max_concurrency
    if args.max_records is not None:
        updates["max_records"] = args.max_records
    if args.proxy:
        updates["proxy"] = args.proxy
    if args.headed:
        updates["headless"] = False
    if not updates:
        return cfg
    try:
        return CrawlConfig(**{**cfg.model_dump(), **updates})
    except ValueError as e:
        print(f"Config error: invalid override: {e}", file=sys.stderr)
        sys.exit(1)


def make_renderer_factory(cfg: CrawlConfig, static: bool):
    if static:
        return lambda: StaticRenderer(
            timeout_s=cfg.navigation_timeout_ms / 1000.0,
            user_agent=cfg.user_agent,
            proxy=cfg.proxy,
        )
    return lambda: PlaywrightRenderer(
        timeout_ms=cfg.navigation_timeout_ms,
        headless=cfg.headless,
        proxy=cfg.proxy,
        user_agent=cfg.user_agent,
    )


def main(argv: list[str] | None = None) -> int:
    if sys.version_info < (3, 10):
        cur = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        print(f"Python 3.10+ required. Current: {cur}.", file=sys.stderr)
        return 1

    parser = argparse.ArgumentParser(prog="roster.run", description="Agent roster crawler and campaign CSV exporter")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file (defaults built in)")
    parser.add_argument("--out", "-o", required=True, help="Output directory")
    parser.add_argument("--input", "-i", default=None, help="Path to start URLs file (one per line); overrides config start_urls")
    parser.add_argument("--start-url", action="append", default=[], help="Start URL (repeatable); overrides config start_urls")
    parser.add_argument("--max-pages", type=int, default=None, help="Maximum listing page index per listing")
    parser.add_argument("--max-concurrency", type=int, default=None, help="Number of concurrent workers")
    parser.add_argument("--max-records", type=int, default=None, help="Stop discovering new listings after this many records")
    parser.add_argument("--proxy", default=None, help="Proxy server passed to the renderer, e.g. http://host:port")
    parser.add_argument("--static", action="store_true", help="Use the static httpx renderer instead of Playwright")
    parser.add_argument("--headed", action="store_true", help="Run Playwright with a visible browser window")
    parser.add_argument("--db", choices=["sqlite", "none"], default="sqlite", help="Record sink: sqlite or none (in-memory) (default: sqlite)")
    parser.add_argument("--db-path", default=None, help="Path to SQLite record sink (default: <out>/records.sqlite)")
    parser.add_argument("--ops-log", default=None, help="Path to ops JSONL log file (default: <out>/ops.log)")
    parser.add_argument("--ops-stdout", action="store_true", help="Also mirror ops JSON to stdout")
    parser.add_argument("--dry-run", action="store_true", help="Validate inputs/config and exit")
    args = parser.parse_args(argv)

    config_path = Path(args.config) if args.config else None
    out_dir = Path(args.out)

    cfg = validate_config(config_path)
    start_urls: List[str] = list(args.start_url or [])
    if args.input:
        input_path = Path(args.input)
        validate_input(input_path)
        start_urls.extend(read_input_urls(input_path))
        if not start_urls:
            print(f"Input error: no usable URLs in {input_path}", file=sys.stderr)
            return 2
    cfg = apply_overrides(cfg, args, start_urls)
    ensure_out_dir(out_dir)

    if args.dry_run:
        print("✅ Dry-run validation passed")
        print(f" - Config: {config_path or '(defaults)'}")
        print(f" - Output dir: {out_dir}")
        print(f" - Start URLs: {len(cfg.start_urls)}")
        print(f" - Renderer: {'static' if args.static else 'playwright'}")
        return 0

    ops_log_path = Path(args.ops_log) if args.ops_log else (out_dir / "ops.log")
    ops_logger = OpsLogger(ops_log_path, also_stdout=bool(args.ops_stdout))

    if args.db == "sqlite":
        sink = SqliteRecordSink(args.db_path or (out_dir / "records.sqlite"))
    else:
        sink = MemoryRecordSink()
    store = FileKeyValueStore(out_dir)
    budget = CrawlBudget(cfg.max_records, seed_scope=cfg.seed_scope)

    print(
        f"Starting crawler: seeds={len(cfg.start_urls)} workers={cfg.max_concurrency} "
        f"max_pages={cfg.max_pages} max_records={cfg.max_records or 'unlimited'}"
    )
    print(f"Python: {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")

    crawler = Crawler(
        cfg,
        renderer_factory=make_renderer_factory(cfg, static=args.static),
        sink=sink,
        budget=budget,
        ops_logger=ops_logger,
        artifact_store=store,
    )
    proc_start = time.perf_counter()
    try:
        stats = crawler.run()
    except KeyboardInterrupt:
        # Export whatever was emitted so far
        print("Interrupted; waiting for in-flight pages, then exporting", file=sys.stderr)
        # One navigation timeout bounds the page each worker is still on
        crawler.stop(timeout=cfg.navigation_timeout_ms / 1000.0)
        stats = crawler.stats

    records = sink.records()
    exporter = ContactExporter(output_dir=out_dir)
    exporter.to_dataset_json(records, filename="dataset.json")
    exported = exporter.to_store(records, store)
    sink.close()

    wall_s = max(0.0, time.perf_counter() - proc_start)
    proc = psutil.Process()
    summary = {
        "summary": True,
        "processed": dict(stats.processed),
        "failed": stats.failed,
        "enqueued": stats.enqueued,
        "records_emitted": len(records),
        "exported_rows": exported,
        "stop_requested": budget.stop_requested,
        "queue": {"pending": crawler.queue.pending, "in_flight": crawler.queue.in_flight},
        "numeric_pagination_seeded": budget.numeric_pagination_seeded,
        "durations": {"wall_s": round(wall_s, 2)},
        "resources": {"rss_mb": round(proc.memory_info().rss / (1024 * 1024), 1)},
        "python": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "host": {"platform": platform.system(), "release": platform.release(), "machine": platform.machine()},
    }
    ops_logger.emit(summary)

    print(f"💾 CSV: {out_dir / 'brevo.csv'}")
    print("🏁 Done.")
    print(f"   Processed pages: {sum(stats.processed.values())} (failed: {stats.failed})")
    print(f"   Records: {len(records)}, exported rows: {exported}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
