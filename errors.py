"""
Exceptions raised by the scraper pipeline

Fetch, parse and identity errors abort the batch they happen in.
Schema migration errors abort the whole run before anything is written.
"""
from typing import Optional


class ScraperError(Exception):
  """Base class for all scraper errors"""


class FetchError(ScraperError):
  """Network/transport failure or a non-success HTTP status"""

  def __init__(self, url: str, message: str, status_code: Optional[int] = None):
    self.url = url
    self.status_code = status_code
    super().__init__(f"{url}: {message}")


class ParseError(ScraperError):
  """Response body does not match the declared content format"""

  def __init__(self, url: str, message: str):
    self.url = url
    super().__init__(f"{url}: {message}")


class MissingFieldError(ScraperError):
  """A field needed to establish an entity's identity is absent"""

  def __init__(self, field_name: str, source: str):
    self.field_name = field_name
    self.source = source
    super().__init__(f"missing '{field_name}' in {source}")


class SchemaMigrationError(ScraperError):
  """A schema migration step failed"""


class StoreIntegrityError(ScraperError):
  """A write would duplicate a unique key or orphan an image"""
