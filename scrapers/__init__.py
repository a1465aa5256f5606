"""
PetRescue scrapers package
"""
from scrapers.index import SearchIndex, ListingIndex, IndexResult, animal_listing_index, group_listing_index
from scrapers.animal_scraper import AnimalScraper
from scrapers.group_scraper import GroupScraper

__all__ = [
  "SearchIndex",
  "ListingIndex",
  "IndexResult",
  "animal_listing_index",
  "group_listing_index",
  "AnimalScraper",
  "GroupScraper",
]
