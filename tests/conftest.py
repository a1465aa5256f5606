"""
Shared fixtures: a throwaway cache and database per test, and builders for
the PetRescue pages the scrapers read.
"""
from typing import Dict, List, Optional

import pytest

from cache import Cache
from dal import DAL
from fetcher import Fetcher

BASE = "https://www.petrescue.com.au"


@pytest.fixture
def cache(tmp_path):
  return Cache(str(tmp_path / "cache"))


@pytest.fixture
def fetcher(cache):
  return Fetcher(cache, timeout=5)


@pytest.fixture
def db_path(tmp_path):
  return str(tmp_path / "data.sqlite")


@pytest.fixture
def dal(db_path):
  store = DAL(db_path)
  store.init_database()
  return store


def dl(pairs: Dict[str, str]) -> str:
  items = "".join(f"<dt>{label}</dt><dd>{value}</dd>" for label, value in pairs.items())
  return f"<dl>{items}</dl>"


def animal_page(
  name: str = "Rex",
  banner: Optional[str] = None,
  group_href: str = "/groups/10/happy-paws?ref=listing",
  images: Optional[List[str]] = None,
  details: Optional[Dict[str, str]] = None,
  interstate: str = "Available for interstate adoption",
  description: str = "<p>A <strong>lovely</strong> boy.</p>",
) -> str:
  """Detail page for one animal listing"""
  if images is None:
    images = ["https://images.petrescue.com.au/c_fill,w_100,h_100/rex-1.jpg"]
  facts = {
    "Gender": "Male",
    "Species": "Dog",
    "Age": "2 years",
    "Adoption fee": "$350 incl. microchip",
    "Desexed": "Yes",
    "Vaccinated": "Yes",
    "Wormed": "No",
    "Heart worm treated": "Yes",
    "Location": "NSW",
    "PetRescue ID": "123",
  }
  facts.update(details or {})
  facts["Rescue group"] = f'<a href="{group_href}">Happy Paws</a>'

  banner_html = f'<div class="pet-listing__status-banner">{banner}</div>' if banner is not None else ""
  thumbs = "".join(f'<img data-src="{src}">' for src in images)
  return f"""
  <html><body>
    {banner_html}
    <h1 class="pet-listing__content__name">{name}</h1>
    <h3 class="pet-listing__content__breed">Kelpie x Border Collie</h3>
    <div class="pet-listing__gallery__thumbnails">{thumbs}</div>
    {dl(facts)}
    <div class="personality">{description}</div>
    <p class="interstate">{interstate}</p>
    <p class="last-updated"><time datetime="2024-03-01">1 March 2024</time></p>
  </body></html>
  """


def group_page(contact: Optional[Dict[str, str]] = None) -> str:
  """Profile page for one rescue group"""
  contact_html = ""
  if contact is not None:
    items = "".join(f"<dt>{label}:</dt><dd>{value}</dd>" for label, value in contact.items())
    contact_html = f'<dl class="contact-details">{items}</dl>'
  return f"""
  <html><body>
    <h1 class="group-profile__name">Happy Paws Rescue</h1>
    <p class="group-profile__states">Active in: NSW, ACT</p>
    <ul class="social-links">
      <li><a href="https://facebook.com/happypaws"><i class="fa fa-facebook"></i></a></li>
      <li><a href="https://instagram.com/happypaws"><i class="fab fa-instagram"></i></a></li>
      <li><a href="https://facebook.com/other"><i class="fa fa-facebook"></i></a></li>
    </ul>
    <section class="group-profile__content">
      <h2>About Happy Paws</h2>
      <p>We rescue <em>dogs</em>.</p>
      <h2>How to adopt</h2>
      <p>Fill in the form.</p>
    </section>
    {contact_html}
  </body></html>
  """


def listing_page(hrefs: List[str], last_page: Optional[int] = None, kind: str = "listings") -> str:
  """One page of an HTML listing (animals or groups)"""
  cards = "".join(
    f'<article class="cards-{kind}-preview"><a class="cards-{kind}-preview__content" href="{href}">x</a></article>'
    for href in hrefs
  )
  pagination = ""
  if last_page is not None:
    pagination = f'<nav class="pagination"><span class="last"><a href="?page={last_page}">Last</a></span></nav>'
  return f'<html><body><div class="search-results">{cards}</div>{pagination}</body></html>'


def search_page(ids: List[int], count: int) -> dict:
  """One page of the JSON search endpoint"""
  return {"Count": count, "SearchResults": [{"Id": i, "Name": f"Pet {i}"} for i in ids]}
