#!/usr/bin/env python3
"""
PetRescue Scraper - Main Runner
v1.0.0

Indexes the PetRescue catalogue, diffs the identifiers against what is
already stored, scrapes detail pages for the new ones, and persists them in
batches of BATCH_SIZE. Each batch (animals plus their images) is one
transaction, so an interrupted run loses at most one batch and the next run
picks up where it stopped.

Usage:
  python scraper.py                          # Animals, then groups
  python scraper.py --only animals           # One entity kind
  python scraper.py --categories dogs cats   # Limit the crawl
  python scraper.py --detail-cache refresh   # Re-fetch detail pages
  python scraper.py --report                 # Row counts per table
  python scraper.py --export animals         # Export a table to CSV

Exit status: 0 on success, 1 if any batch or index crawl failed,
2 if the schema could not be migrated.
"""
import argparse
import csv
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from cache import Cache
from config import RunConfig, load_run_config
from dal import DAL, KeySnapshot, Write, diff_new
from errors import ScraperError, SchemaMigrationError
from fetcher import Fetcher, CachePolicy
from schema import Animal, Image, generate_images
from scrapers import (
  AnimalScraper, GroupScraper, SearchIndex, IndexResult,
  animal_listing_index, group_listing_index,
)

logger = logging.getLogger(__name__)

ENTITY_KINDS = ("animals", "groups")


@dataclass
class TableSummary:
  """Existing vs. new counts for one table after a run"""
  table: str
  existing: int = 0
  new: int = 0
  persisted: int = 0
  errors: List[str] = field(default_factory=list)


def setup_logging(level: str = "INFO") -> None:
  logging.basicConfig(
    level=getattr(logging, level.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
  )


def chunked(items: Sequence[str], size: int) -> Iterator[List[str]]:
  for start in range(0, len(items), size):
    yield list(items[start:start + size])


def scrape_batch(batch: List[str], scrape_one: Callable, max_workers: int) -> list:
  """Scrape every identifier in the batch, keeping batch order"""
  if max_workers <= 1:
    return [scrape_one(identifier) for identifier in batch]
  with ThreadPoolExecutor(max_workers=max_workers) as executor:
    return list(executor.map(scrape_one, batch))


def run_batches(
  identifiers: List[str],
  scrape_one: Callable,
  to_writes: Callable[[list], List[Write]],
  dal: DAL,
  known: KeySnapshot,
  summary: TableSummary,
  batch_size: int,
  max_workers: int = 1,
  derived: Optional[Dict[str, TableSummary]] = None,
) -> None:
  """
  Scrape and persist identifiers batch by batch.
  A failing batch is logged, recorded on the summary and skipped; nothing
  from it is written. Rows written to other tables alongside the entities
  (images) are counted on their own summary in derived.
  """
  total_batches = (len(identifiers) + batch_size - 1) // batch_size
  for number, batch in enumerate(chunked(identifiers, batch_size), start=1):
    logger.info("  📦 %s batch %d/%d (%d)", summary.table, number, total_batches, len(batch))
    try:
      entities = scrape_batch(batch, scrape_one, max_workers)
      writes = to_writes(entities)
      dal.persist_batch(writes)
    except ScraperError as e:
      logger.error("  ❌ Batch %d aborted, nothing persisted: %s", number, e)
      summary.errors.append(f"{summary.table} batch {number}: {e}")
      continue

    known.add(entity.url for entity in entities)
    summary.persisted += len(entities)
    for write in writes:
      if derived and write.table in derived:
        derived[write.table].new += len(write.records)


def unique_images(images: List[Image]) -> List[Image]:
  """
  One Image per URL. When animals in a batch share a photo the last one
  keeps it, as INSERT OR REPLACE does across batches.
  """
  by_url: Dict[str, Image] = {}
  for image in images:
    if image.url in by_url:
      logger.debug("  🖼️ %s shared by %s and %s", image.url, by_url[image.url].animal_url, image.animal_url)
    by_url[image.url] = image
  return list(by_url.values())


def merge_identifiers(*sources: Iterable[str]) -> List[str]:
  """Concatenate identifier sources, dropping repeats, keeping first-seen order"""
  merged: Dict[str, None] = {}
  for source in sources:
    merged.update(dict.fromkeys(source))
  return list(merged)


# ============================================
# Per-entity pipelines
# ============================================

def scrape_animals(dal: DAL, fetcher: Fetcher, config: RunConfig, animal_index: str = "search") -> Dict[str, TableSummary]:
  """Index -> diff -> detail scrape -> image derivation -> persist"""
  index_policy = CachePolicy.from_string(config.index_cache)
  detail_policy = CachePolicy.from_string(config.detail_cache)

  print_header("🐾 ANIMALS")
  animals = TableSummary("animals")
  images = TableSummary("images", existing=dal.count("images"))

  if animal_index == "listing":
    index = IndexResult()
    for category in config.categories:
      crawled = animal_listing_index(fetcher, index_policy, category).crawl()
      index.identifiers = merge_identifiers(index.identifiers, crawled.identifiers)
      index.totals.update(crawled.totals)
  else:
    index = SearchIndex(fetcher, index_policy).crawl(config.categories)

  known = dal.snapshot("animals", "url")
  new_urls = diff_new(index.identifiers, known)
  animals.existing = len(index.identifiers) - len(new_urls)
  animals.new = len(new_urls)
  logger.info("  🔎 %d indexed, %d already stored, %d new", len(index), animals.existing, animals.new)

  scraper = AnimalScraper(fetcher, detail_policy)

  def to_writes(batch: List[Animal]) -> List[Write]:
    photos = unique_images([image for animal in batch for image in generate_images(animal)])
    return [Write("animals", batch), Write("images", photos)]

  run_batches(new_urls, scraper.scrape_details, to_writes, dal, known, animals,
              config.batch_size, config.max_workers, derived={"images": images})
  images.persisted = dal.count("images") - images.existing
  return {"animals": animals, "images": images}


def scrape_groups(dal: DAL, fetcher: Fetcher, config: RunConfig) -> Dict[str, TableSummary]:
  """Groups come from the groups listing plus every group an animal points at"""
  index_policy = CachePolicy.from_string(config.index_cache)
  detail_policy = CachePolicy.from_string(config.detail_cache)

  print_header("🏠 GROUPS")
  groups = TableSummary("groups")

  listed = group_listing_index(fetcher, index_policy).crawl()
  referenced = dal.column_values("animals", "group_url")
  identifiers = merge_identifiers(listed.identifiers, referenced)

  known = dal.snapshot("groups", "url")
  new_urls = diff_new(identifiers, known)
  groups.existing = len(identifiers) - len(new_urls)
  groups.new = len(new_urls)
  logger.info("  🔎 %d listed, %d referenced, %d new", len(listed), len(referenced), groups.new)

  scraper = GroupScraper(fetcher, detail_policy)
  run_batches(new_urls, scraper.scrape_details, lambda batch: [Write("groups", batch)],
              dal, known, groups, config.batch_size, config.max_workers)
  return {"groups": groups}


# ============================================
# Runner
# ============================================

def print_header(title: str) -> None:
  logger.info("─" * 40)
  logger.info(title)
  logger.info("─" * 40)


def run_scrape(config: RunConfig, only: Optional[str] = None, animal_index: str = "search") -> Dict:
  """
  Run the configured entity pipelines in sequence.

  Returns:
    Dict with per-table summaries and the list of errors
  Raises:
    SchemaMigrationError before anything is fetched if the store
    cannot be migrated
  """
  logger.info("=" * 60)
  logger.info("🐕 PETRESCUE SCRAPER - Starting")
  logger.info("   Time: %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
  logger.info("=" * 60)

  dal = DAL(config.db_path)
  dal.init_database()
  fetcher = Fetcher(Cache(config.cache_dir))

  summaries: Dict[str, TableSummary] = {}
  errors: List[str] = []

  pipelines = {
    "animals": lambda: scrape_animals(dal, fetcher, config, animal_index),
    "groups": lambda: scrape_groups(dal, fetcher, config),
  }

  for kind in ENTITY_KINDS:
    if only and kind != only:
      continue
    try:
      summaries.update(pipelines[kind]())
    except ScraperError as e:
      # Index crawl failures land here; batch failures are recorded per table
      logger.error("  ❌ %s: %s", kind, e)
      errors.append(f"{kind}: {e}")

  for summary in summaries.values():
    errors.extend(summary.errors)

  logger.info("=" * 60)
  logger.info("📊 SCRAPE COMPLETE")
  logger.info("=" * 60)
  for summary in summaries.values():
    logger.info("   %-8s %d existing, %d new, %d persisted",
                summary.table, summary.existing, summary.new, summary.persisted)
  if errors:
    logger.warning("   Errors: %d", len(errors))
    for err in errors:
      logger.warning("     - %s", err)

  return {"tables": summaries, "errors": errors}


def show_report(db_path: str) -> Dict[str, int]:
  """Show row counts for every table"""
  dal = DAL(db_path)
  dal.init_database()

  counts = {table: dal.count(table) for table in ("animals", "images", "groups")}
  logger.info("=" * 60)
  logger.info("🐕 PETRESCUE - Current Store")
  logger.info("=" * 60)
  for table, count in counts.items():
    logger.info("  %-8s %d rows", table, count)
  return counts


def export_csv(db_path: str, table: str) -> str:
  """Export one table to a timestamped CSV file"""
  dal = DAL(db_path)
  dal.init_database()

  rows = dal.fetch_rows(table)
  filename = f"{table}_export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"

  with open(filename, "w", newline="", encoding="utf-8") as f:
    if rows:
      writer = csv.DictWriter(f, fieldnames=rows[0].keys())
      writer.writeheader()
      writer.writerows(rows)

  logger.info("✅ Exported %d %s to %s", len(rows), table, filename)
  return filename


def main(argv: Optional[List[str]] = None) -> int:
  parser = argparse.ArgumentParser(description="PetRescue Scraper")
  parser.add_argument("--categories", nargs="+", help="Categories to crawl (default: CATEGORIES)")
  parser.add_argument("--only", choices=ENTITY_KINDS, help="Scrape one entity kind")
  parser.add_argument("--animal-index", choices=("search", "listing"), default="search",
                      help="Discover animals via the JSON search or the HTML listing")
  parser.add_argument("--index-cache", choices=[p.value for p in CachePolicy], help="Cache policy for index pages")
  parser.add_argument("--detail-cache", choices=[p.value for p in CachePolicy], help="Cache policy for detail pages")
  parser.add_argument("--db", dest="db_path", help="SQLite database path")
  parser.add_argument("--cache-dir", help="Response cache directory")
  parser.add_argument("--workers", dest="max_workers", type=int, help="Parallel detail fetches per batch")
  parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL)")
  parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
  parser.add_argument("--report", action="store_true", help="Show row counts per table")
  parser.add_argument("--export", choices=("animals", "images", "groups"), help="Export a table to CSV")

  args = parser.parse_args(argv)

  config = load_run_config(
    categories=args.categories,
    index_cache=args.index_cache,
    detail_cache=args.detail_cache,
    db_path=args.db_path,
    cache_dir=args.cache_dir,
    max_workers=args.max_workers,
    log_level="DEBUG" if args.verbose else args.log_level,
  )
  setup_logging(config.log_level)

  try:
    if args.report:
      show_report(config.db_path)
      return 0
    if args.export:
      export_csv(config.db_path, args.export)
      return 0
    result = run_scrape(config, only=args.only, animal_index=args.animal_index)
  except SchemaMigrationError as e:
    logger.error("❌ Schema migration failed, nothing was written: %s", e)
    return 2

  return 1 if result["errors"] else 0


if __name__ == "__main__":
  sys.exit(main())
