"""
Scraper for PetRescue rescue group profiles
v1.0.0

Profile layout:
- two narrative sections, "about" first and "adoption process" second;
  they are picked by position because the heading wording varies by group
- a header line listing the states the group is active in ("Active in: NSW, ACT")
- social icons, one per channel
- an optional contact-details definition list
"""
import logging
import re
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from schema import Group, get_current_timestamp
from scrapers.base_scraper import BaseScraper, text_of, to_markdown

logger = logging.getLogger(__name__)

NAME_SELECTOR = "h1.group-profile__name"
SECTION_HEADING_SELECTOR = "section.group-profile__content h2"
STATES_SELECTOR = "p.group-profile__states"
SOCIAL_ICON_SELECTOR = "ul.social-links a[href] i[class]"
CONTACT_SELECTOR = "dl.contact-details"

MAX_PHONES = 3
GENERIC_ICON_CLASSES = {"fa", "fab", "fas", "far", "icon", "social-icon"}


def section_markdown(heading: Tag) -> Optional[str]:
  """Markdown for everything between heading and the next heading of the same level"""
  parts = []
  for sibling in heading.next_siblings:
    if isinstance(sibling, Tag) and sibling.name == heading.name:
      break
    parts.append(str(sibling))
  return to_markdown(BeautifulSoup("<div>" + "".join(parts) + "</div>", "html.parser").div)


def icon_channel(classes: List[str]) -> Optional[str]:
  """'fa fa-facebook' -> 'facebook'"""
  specific = [c for c in classes if c not in GENERIC_ICON_CLASSES]
  if not specific:
    return None
  return re.sub(r"^(fa|icon|social-icon)-+", "", specific[-1]).lower() or None


class GroupScraper(BaseScraper):
  """Detail-page scraper for a single rescue group"""

  def scrape_details(self, url: str) -> Group:
    soup = self.fetch_page(url)

    about, adoption_process = self._sections(soup)
    contact = self._contact(soup, url)

    group = Group(
      url=url,
      name=text_of(soup.select_one(NAME_SELECTOR)),
      about=about,
      adoption_process=adoption_process,
      states=tuple(self._states(soup)),
      social=self._social(soup),
      contact_name=contact.get("contact_name"),
      phone_1=contact.get("phone_1"),
      phone_2=contact.get("phone_2"),
      phone_3=contact.get("phone_3"),
      review_labels=tuple(contact.get("review_labels", ())),
      scraped_at=get_current_timestamp(),
    )
    logger.debug("  🏠 %s - %s", group.name, url)
    return group

  def _sections(self, soup: BeautifulSoup) -> Tuple[Optional[str], Optional[str]]:
    headings = soup.select(SECTION_HEADING_SELECTOR)
    about = section_markdown(headings[0]) if len(headings) > 0 else None
    adoption_process = section_markdown(headings[1]) if len(headings) > 1 else None
    return about, adoption_process

  def _states(self, soup: BeautifulSoup) -> List[str]:
    line = text_of(soup.select_one(STATES_SELECTOR))
    if not line:
      return []
    listed = line.rsplit(":", 1)[-1]
    return [state.strip() for state in listed.split(",") if state.strip()]

  def _social(self, soup: BeautifulSoup) -> Dict[str, str]:
    social = {}
    for icon in soup.select(SOCIAL_ICON_SELECTOR):
      channel = icon_channel(icon.get("class", []))
      href = icon.find_parent("a")["href"].strip()
      if channel and href and channel not in social:
        social[channel] = href
    return social

  def _contact(self, soup: BeautifulSoup, url: str) -> dict:
    dl = soup.select_one(CONTACT_SELECTOR)
    if dl is None:
      return {}

    contact = {}
    phones = []
    review_labels = []

    for dt in dl.find_all("dt"):
      label = (text_of(dt) or "").rstrip(":").strip()
      value = text_of(dt.find_next_sibling("dd"))
      label_lower = label.lower()

      if "name" in label_lower or label_lower == "contact":
        contact["contact_name"] = value
      elif "phone" in label_lower or "mobile" in label_lower:
        if len(phones) < MAX_PHONES:
          phones.append(value)
        else:
          logger.warning("  ⚠️ Extra phone number beyond %d (%r) at %s - needs manual review", MAX_PHONES, label, url)
          review_labels.append(label)
      else:
        logger.warning("  ⚠️ Unrecognised contact label %r at %s - needs manual review", label, url)
        review_labels.append(label)

    for i, phone in enumerate(phones, start=1):
      contact[f"phone_{i}"] = phone
    contact["review_labels"] = review_labels
    return contact
