"""
Configuration for the PetRescue scraper

Values can be overridden with environment variables (or a local .env file)
and, for a single run, with command line flags in scraper.py.
"""
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Site layout
BASE_URL = "https://www.petrescue.com.au"
SEARCH_URL = f"{BASE_URL}/listings/search"
DETAIL_URL_TEMPLATE = BASE_URL + "/listings/{id}"
GROUPS_URL = f"{BASE_URL}/groups"

# Categories to crawl (species filter tokens for the search endpoint)
CATEGORIES = [
  c.strip() for c in os.environ.get("CATEGORIES", "dogs,cats,other").split(",") if c.strip()
]

# Cache policy per phase: "bypass", "use" or "refresh"
INDEX_CACHE_POLICY = os.environ.get("INDEX_CACHE", "refresh")
DETAIL_CACHE_POLICY = os.environ.get("DETAIL_CACHE", "use")

# Storage
DB_PATH = os.environ.get("DB_PATH", "data.sqlite")
CACHE_DIR = os.environ.get("CACHE_DIR", "cache")

# Crawl shape
PER_PAGE = 60
BATCH_SIZE = 10
MAX_WORKERS = int(os.environ.get("MAX_WORKERS", "1"))
REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", "30"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# User agent for web requests
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"


@dataclass
class RunConfig:
  """Everything a single scrape run needs, resolved once at startup"""
  categories: List[str] = field(default_factory=lambda: list(CATEGORIES))
  index_cache: str = INDEX_CACHE_POLICY
  detail_cache: str = DETAIL_CACHE_POLICY
  db_path: str = DB_PATH
  cache_dir: str = CACHE_DIR
  max_workers: int = MAX_WORKERS
  batch_size: int = BATCH_SIZE
  log_level: str = LOG_LEVEL


def load_run_config(**overrides) -> RunConfig:
  """Build a RunConfig from module defaults, ignoring overrides set to None"""
  values = {k: v for k, v in overrides.items() if v is not None}
  return RunConfig(**values)
