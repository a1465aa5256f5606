"""
Scraper for PetRescue animal listings
v1.0.0

The status banner decides how much of the page is read. Listings with no
banner are available and get the full attribute set; adopted, withdrawn or
otherwise bannered listings keep only identity, group, location, images
and timestamps.
"""
import logging
import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from config import BASE_URL
from schema import Animal, AnimalStatus, get_current_timestamp
from scrapers.base_scraper import BaseScraper, canonical_url, find_labelled, text_of, to_markdown

logger = logging.getLogger(__name__)

STATUS_BANNER_SELECTOR = "div.pet-listing__status-banner"
NAME_SELECTOR = "h1.pet-listing__content__name"
BREED_SELECTOR = "h3.pet-listing__content__breed"
DESCRIPTION_SELECTOR = "div.personality"
INTERSTATE_SELECTOR = ".interstate"
THUMBNAIL_SELECTOR = "div.pet-listing__gallery__thumbnails img"
LAST_UPDATED_SELECTOR = "p.last-updated time"

# Thumbnails are served through an image CDN that takes size tokens in
# the path; rewrite them to the full-size gallery dimensions.
IMAGE_SIZE = 638
WIDTH_TOKEN = re.compile(r"\bw_\d+\b")
HEIGHT_TOKEN = re.compile(r"\bh_\d+\b")

LISTING_ID = re.compile(r"/listings/(\d+)")


def full_size_image_url(url: str) -> str:
  url = WIDTH_TOKEN.sub(f"w_{IMAGE_SIZE}", url)
  return HEIGHT_TOKEN.sub(f"h_{IMAGE_SIZE}", url)


class AnimalScraper(BaseScraper):
  """Detail-page scraper for a single animal listing"""

  def scrape_details(self, url: str) -> Animal:
    soup = self.fetch_page(url)

    status = AnimalStatus.from_banner(text_of(soup.select_one(STATUS_BANNER_SELECTOR)))

    fields = {
      "url": url,
      "status": status,
      "name": text_of(soup.select_one(NAME_SELECTOR)),
      "breed": text_of(soup.select_one(BREED_SELECTOR)),
      "gender": self._lower(text_of(find_labelled(soup, r"gender"))),
      "species": self._lower(text_of(find_labelled(soup, r"species"))),
      "site_id": self._site_id(soup, url),
      "group_url": self._group_url(soup),
      "state": text_of(find_labelled(soup, r"location")),
      "images": tuple(self._images(soup)),
      "last_updated": self._last_updated(soup),
      "scraped_at": get_current_timestamp(),
    }

    if status == AnimalStatus.AVAILABLE.value:
      fields.update(self._available_fields(soup))

    animal = Animal(**fields)
    logger.debug("  🐾 %s (%s) - %s", animal.name, animal.status, url)
    return animal

  def _available_fields(self, soup: BeautifulSoup) -> dict:
    interstate = text_of(soup.select_one(INTERSTATE_SELECTOR))
    return {
      "age": text_of(find_labelled(soup, r"\bage\b")),
      "adoption_fee": self.extract_fee(text_of(find_labelled(soup, r"adoption fee"))),
      "desexed": self.is_yes(text_of(find_labelled(soup, r"desexed"))),
      "vaccinated": self.is_yes(text_of(find_labelled(soup, r"vaccinated"))),
      "wormed": self.is_yes(text_of(find_labelled(soup, r"\bwormed"))),
      "heartworm_treated": self.is_yes(text_of(find_labelled(soup, r"heart\s*worm"))),
      "description": to_markdown(soup.select_one(DESCRIPTION_SELECTOR)),
      "interstate": not (interstate or "").startswith("Not available"),
    }

  def _group_url(self, soup: BeautifulSoup) -> Optional[str]:
    dd = find_labelled(soup, r"rescue group")
    link = dd.find("a", href=True) if dd else None
    if link is None:
      return None
    return canonical_url(link["href"])

  def _site_id(self, soup: BeautifulSoup, url: str) -> Optional[int]:
    match = re.search(r"\d+", text_of(find_labelled(soup, r"petrescue id")) or "")
    if match:
      return int(match.group(0))
    match = LISTING_ID.search(url)
    return int(match.group(1)) if match else None

  def _images(self, soup: BeautifulSoup) -> List[str]:
    images = []
    for img in soup.select(THUMBNAIL_SELECTOR):
      src = img.get("data-src") or img.get("src")
      if not src:
        continue
      image_url = full_size_image_url(urljoin(BASE_URL, src.strip()))
      if image_url not in images:
        images.append(image_url)
    return images

  def _last_updated(self, soup: BeautifulSoup) -> Optional[str]:
    element = soup.select_one(LAST_UPDATED_SELECTOR)
    if element is None:
      return None
    return element.get("datetime") or text_of(element)

  def _lower(self, value: Optional[str]) -> Optional[str]:
    return value.lower() if value else value
