"""
Base scraper class for PetRescue pages

Holds a shared Fetcher plus the cache policy this scraper was configured
with, and the small parsing helpers every detail page needs.
"""
import re
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag
from markdownify import markdownify

from config import BASE_URL
from fetcher import Fetcher, CachePolicy, ContentFormat


def canonical_url(href: str, base: str = BASE_URL) -> str:
  """Absolute URL with query string and fragment removed"""
  parts = urlsplit(urljoin(base, href.strip()))
  return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def text_of(element: Optional[Tag]) -> Optional[str]:
  """Whitespace-collapsed text of an element, or None if missing/empty"""
  if element is None:
    return None
  text = " ".join(element.get_text(" ", strip=True).split())
  return text or None


def to_markdown(element: Optional[Tag]) -> Optional[str]:
  """Convert an element's markup to markdown"""
  if element is None:
    return None
  markdown = markdownify(str(element), heading_style="ATX").strip()
  return markdown or None


def find_labelled(soup: BeautifulSoup, label: str, scope: str = "dl") -> Optional[Tag]:
  """
  Find the <dd> that follows the first <dt> whose text matches label
  (case-insensitive) inside any element matching scope.
  """
  pattern = re.compile(label, re.IGNORECASE)
  for dl in soup.select(scope):
    for dt in dl.find_all("dt"):
      if pattern.search(dt.get_text(" ", strip=True)):
        return dt.find_next_sibling("dd")
  return None


class BaseScraper:
  """Base class for detail-page scrapers"""

  def __init__(self, fetcher: Fetcher, policy: CachePolicy):
    self.fetcher = fetcher
    self.policy = policy

  def fetch_page(self, url: str) -> BeautifulSoup:
    """Fetch and parse a webpage"""
    return self.fetcher.fetch(url, self.policy, ContentFormat.MARKUP)

  def scrape_details(self, url: str):
    """
    Override this method in child classes
    Returns the entity scraped from url
    """
    raise NotImplementedError("Subclass must implement scrape_details()")

  def is_yes(self, value: Optional[str]) -> Optional[bool]:
    """Contains the token 'yes' (any case) -> True, else False; missing -> None"""
    if value is None:
      return None
    return re.search(r"\byes\b", value, re.IGNORECASE) is not None

  def extract_fee(self, text: Optional[str]) -> Optional[str]:
    """Extract adoption fee from text"""
    if not text:
      return None

    # Look for dollar amounts
    fee_match = re.search(r'\$\s*(\d+(?:,\d{3})*(?:\.\d{2})?)', text)
    if fee_match:
      return f"${fee_match.group(1)}"

    return text.strip()
