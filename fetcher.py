"""
HTTP fetcher with per-request cache policy
v1.0.0

Every call states how the cache is used and how the body is decoded:

  fetcher.fetch(url, CachePolicy.USE_CACHE, ContentFormat.MARKUP)

Network failures and non-2xx statuses raise FetchError. A body that cannot
be decoded raises ParseError and is never written to the cache.
"""
import json
import logging
import threading
from enum import Enum
from typing import Any

import requests
from bs4 import BeautifulSoup

from cache import Cache
from config import USER_AGENT, REQUEST_TIMEOUT
from errors import FetchError, ParseError

logger = logging.getLogger(__name__)


class CachePolicy(str, Enum):
  """How a single fetch interacts with the cache"""
  BYPASS = "bypass"        # live request, cache untouched
  USE_CACHE = "use"        # cached body if present, else live + store
  REFRESH = "refresh"      # live request, entry created or replaced

  @classmethod
  def from_string(cls, value: str) -> "CachePolicy":
    """Convert string to CachePolicy, handling variations"""
    value_lower = (value or "").lower().strip().replace("-", "_")

    if value_lower == "bypass":
      return cls.BYPASS
    elif value_lower in ["use", "use_cache", "usecache", "cache"]:
      return cls.USE_CACHE
    elif value_lower == "refresh":
      return cls.REFRESH
    raise ValueError(f"Unknown cache policy: {value!r}")


class ContentFormat(str, Enum):
  """How a response body is decoded"""
  MARKUP = "markup"
  JSON = "json"


class Fetcher:
  """Issues HTTP GETs, consulting a Cache according to the caller's policy"""

  def __init__(self, cache: Cache, timeout: float = REQUEST_TIMEOUT):
    self.cache = cache
    self.timeout = timeout
    self._local = threading.local()

  @property
  def session(self) -> requests.Session:
    # requests.Session is not safe to share between worker threads
    session = getattr(self._local, "session", None)
    if session is None:
      session = requests.Session()
      session.headers.update({"User-Agent": USER_AGENT})
      self._local.session = session
    return session

  def fetch(self, url: str, policy: CachePolicy, fmt: ContentFormat) -> Any:
    """Fetch url and return a BeautifulSoup tree or a decoded JSON value"""
    if policy is CachePolicy.USE_CACHE:
      body = self.cache.get(url)
      if body is not None:
        logger.debug("  💾 Cache hit: %s", url)
        return self._parse(url, body, fmt)

    body = self._get(url)
    parsed = self._parse(url, body, fmt)

    if policy is CachePolicy.USE_CACHE:
      self.cache.put(url, body)
    elif policy is CachePolicy.REFRESH:
      self.cache.overwrite(url, body)

    return parsed

  def _get(self, url: str) -> bytes:
    logger.debug("  🔍 Fetching: %s", url)
    try:
      response = self.session.get(url, timeout=self.timeout)
      response.raise_for_status()
    except requests.HTTPError as e:
      raise FetchError(url, str(e), status_code=e.response.status_code) from e
    except requests.RequestException as e:
      raise FetchError(url, str(e)) from e
    return response.content

  def _parse(self, url: str, body: bytes, fmt: ContentFormat) -> Any:
    if fmt is ContentFormat.JSON:
      try:
        return json.loads(body)
      except ValueError as e:
        raise ParseError(url, f"invalid JSON: {e}") from e

    soup = BeautifulSoup(body, "html.parser")
    if soup.find() is None:
      raise ParseError(url, "no markup elements in response")
    return soup
