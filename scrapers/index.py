"""
Index crawlers
v1.0.0

Walk the site's paginated listings and yield bare identifiers (canonical
detail-page URLs) without fetching any detail pages.

Two variants:
- SearchIndex walks the JSON search endpoint. The first page (skip=0)
  reports the total Count; the remaining offsets step by per_page up to it.
- ListingIndex walks an HTML listing. The "last page" link in the
  pagination control gives the page count; pages 1..last are read in order.

Both yield each identifier once, in the order first seen.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit

from bs4 import BeautifulSoup

from config import BASE_URL, SEARCH_URL, DETAIL_URL_TEMPLATE, GROUPS_URL, PER_PAGE
from errors import MissingFieldError, ParseError
from fetcher import Fetcher, CachePolicy, ContentFormat
from scrapers.base_scraper import canonical_url

logger = logging.getLogger(__name__)

LISTINGS_URL_TEMPLATE = BASE_URL + "/listings/search/{category}"
ANIMAL_LINK_SELECTOR = "div.search-results article.cards-listings-preview a.cards-listings-preview__content"
GROUP_LINK_SELECTOR = "div.search-results article.cards-groups-preview a.cards-groups-preview__content"
LAST_PAGE_SELECTOR = "nav.pagination span.last a"


@dataclass
class IndexResult:
  """Identifiers found by one index crawl, plus the totals each source reported"""
  identifiers: List[str] = field(default_factory=list)
  totals: Dict[str, int] = field(default_factory=dict)

  def __len__(self) -> int:
    return len(self.identifiers)


def display_forms(category: str) -> Tuple[str, str]:
  """(singular, plural) of a category name, for progress messages only"""
  name = category.strip().lower()
  if name.endswith("s"):
    return name[:-1], name
  return name, name + "s"


def page_offsets(total: int, per_page: int) -> List[int]:
  """
  Offsets of every page needed to cover total results.
  The first page is always fetched, even when total is 0.
  """
  if per_page <= 0:
    raise ValueError("per_page must be positive")
  return [0] + list(range(per_page, total, per_page))


class SearchIndex:
  """Identifier discovery over the paginated JSON search endpoint"""

  def __init__(self, fetcher: Fetcher, policy: CachePolicy,
               search_url: str = SEARCH_URL, per_page: int = PER_PAGE):
    self.fetcher = fetcher
    self.policy = policy
    self.search_url = search_url
    self.per_page = per_page

  def page_url(self, category: str, skip: int) -> str:
    query = urlencode({"q": category, "skip": skip, "per_page": self.per_page})
    return f"{self.search_url}?{query}"

  def discover(self, categories: Iterable[str]) -> Iterator[str]:
    """Lazily yield detail URLs for every listing in the given categories"""
    return self._discover(categories, {})

  def crawl(self, categories: Iterable[str]) -> IndexResult:
    """Run the whole crawl once and return its result"""
    result = IndexResult()
    result.identifiers = list(self._discover(categories, result.totals))
    return result

  def _discover(self, categories: Iterable[str], totals: Dict[str, int]) -> Iterator[str]:
    seen = set()

    for category in dict.fromkeys(categories):
      singular, plural = display_forms(category)
      logger.info("🐾 Indexing %s", plural)

      first_url = self.page_url(category, 0)
      first = self._fetch_page(first_url)
      total = first["Count"]
      totals[category] = total

      offsets = page_offsets(total, self.per_page)
      logger.info("  ↳ %d %s across %d page(s)", total, singular if total == 1 else plural, len(offsets))

      for skip in offsets:
        if skip == 0:
          url, data = first_url, first
        else:
          url = self.page_url(category, skip)
          data = self._fetch_page(url)

        for stub in data["SearchResults"]:
          identifier = self._identifier(stub, url)
          if identifier not in seen:
            seen.add(identifier)
            yield identifier

  def _fetch_page(self, url: str) -> dict:
    data = self.fetcher.fetch(url, self.policy, ContentFormat.JSON)
    if not isinstance(data, dict):
      raise ParseError(url, "search response is not an object")
    if not isinstance(data.get("Count"), int):
      raise ParseError(url, "search response has no integer Count")
    if not isinstance(data.get("SearchResults"), list):
      raise ParseError(url, "search response has no SearchResults list")
    return data

  def _identifier(self, stub: dict, source: str) -> str:
    listing_id = stub.get("Id") if isinstance(stub, dict) else None
    if listing_id in (None, ""):
      raise MissingFieldError("Id", source)
    return DETAIL_URL_TEMPLATE.format(id=listing_id)


class ListingIndex:
  """Identifier discovery over an HTML listing with a pagination control"""

  def __init__(self, fetcher: Fetcher, policy: CachePolicy, listing_url: str, link_selector: str):
    self.fetcher = fetcher
    self.policy = policy
    self.listing_url = listing_url
    self.link_selector = link_selector

  def page_url(self, page: int) -> str:
    return f"{self.listing_url}?{urlencode({'page': page})}"

  def last_page(self, soup: BeautifulSoup) -> int:
    """Page number from the 'last page' link; 1 when there is no pagination"""
    link = soup.select_one(LAST_PAGE_SELECTOR)
    if link is None:
      return 1

    href = link.get("href") or ""
    pages = parse_qs(urlsplit(href).query).get("page")
    if not pages or not pages[0].isdigit():
      raise ParseError(self.listing_url, f"last page link has no page number: {href!r}")
    return int(pages[0])

  def discover(self) -> Iterator[str]:
    """Lazily yield detail URLs from every page of the listing"""
    return self._discover({})

  def crawl(self) -> IndexResult:
    result = IndexResult()
    result.identifiers = list(self._discover(result.totals))
    return result

  def _discover(self, totals: Dict[str, int]) -> Iterator[str]:
    seen = set()
    first = self._fetch(1)
    last = self.last_page(first)
    totals[self.listing_url] = last
    logger.info("📄 %s: %d page(s)", self.listing_url, last)

    for page in range(1, last + 1):
      soup = first if page == 1 else self._fetch(page)
      for identifier in self._identifiers(soup, self.page_url(page)):
        if identifier not in seen:
          seen.add(identifier)
          yield identifier

  def _fetch(self, page: int) -> BeautifulSoup:
    url = self.page_url(page)
    logger.debug("  ↳ Page %d: %s", page, url)
    return self.fetcher.fetch(url, self.policy, ContentFormat.MARKUP)

  def _identifiers(self, soup: BeautifulSoup, source: str) -> Iterator[str]:
    for link in soup.select(self.link_selector):
      href = link.get("href")
      if not href:
        raise MissingFieldError("href", source)
      yield canonical_url(href)


def animal_listing_index(fetcher: Fetcher, policy: CachePolicy, category: str) -> ListingIndex:
  """HTML listing walk for one animal category"""
  return ListingIndex(fetcher, policy, LISTINGS_URL_TEMPLATE.format(category=category), ANIMAL_LINK_SELECTOR)


def group_listing_index(fetcher: Fetcher, policy: CachePolicy, groups_url: Optional[str] = None) -> ListingIndex:
  """HTML listing walk over all rescue groups"""
  return ListingIndex(fetcher, policy, groups_url or GROUPS_URL, GROUP_LINK_SELECTOR)
